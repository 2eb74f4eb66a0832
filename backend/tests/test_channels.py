import unittest
from unittest import mock

from firebase_admin import messaging

from medx.models.notification import ChannelName
from medx.services.channels import FallbackChannel, NativeChannel, PushSurface, ToastSurface, select_channels
from reminder_fakes import FakeSurface, _run


class TestPushSurface(unittest.TestCase):
    def setUp(self):
        self.tokens = {"u1": ["token-good-1234567", "token-stale-1234567"]}
        self.pruned = []

        async def lookup(uid):
            return list(self.tokens.get(uid, []))

        async def prune(uid, tokens):
            self.pruned.append((uid, tokens))

        self.surface = PushSurface(lookup, prune)

    def test_permission_needs_firebase_and_tokens(self):
        with mock.patch("medx.services.channels.is_firebase_ready", return_value=False):
            self.assertFalse(_run(self.surface.request_permission("u1")))
        with mock.patch("medx.services.channels.is_firebase_ready", return_value=True):
            self.assertTrue(_run(self.surface.request_permission("u1")))
            self.assertFalse(_run(self.surface.request_permission("nobody")))

    def test_show_prunes_unregistered_tokens(self):
        def send(message):
            if message.token.startswith("token-stale"):
                raise messaging.UnregisteredError("gone")
            return "projects/x/messages/1"

        with mock.patch("medx.services.channels.messaging.send", side_effect=send):
            result = _run(self.surface.show("u1", "Title", "Body", {"stock": 3}))

        self.assertTrue(result.ok)
        self.assertEqual(result.value, 1)
        self.assertEqual(self.pruned, [("u1", ["token-stale-1234567"])])

    def test_show_without_tokens_fails(self):
        result = _run(self.surface.show("nobody", "Title", "Body", {}))
        self.assertFalse(result.ok)
        self.assertIn("PermissionUnavailable", result.describe())


class TestToastSurface(unittest.TestCase):
    def test_buffer_is_bounded_per_user(self):
        toasts = ToastSurface(max_size=2)
        for i in range(3):
            toasts.push("u1", f"t{i}", "body", {})
        toasts.push("u2", "other", "body", {})

        self.assertEqual([t["title"] for t in toasts.drain("u1")], ["t1", "t2"])
        self.assertEqual(len(toasts.pending("u2")), 1)


class TestSelectChannels(unittest.TestCase):
    def test_order_follows_permission(self):
        fallback = FallbackChannel(ToastSurface())
        granted = NativeChannel(FakeSurface(granted=True))
        denied = NativeChannel(FakeSurface(granted=False))

        names = [c.name for c in _run(select_channels("u1", granted, fallback))]
        self.assertEqual(names, [ChannelName.NATIVE, ChannelName.TOAST])
        names = [c.name for c in _run(select_channels("u1", denied, fallback))]
        self.assertEqual(names, [ChannelName.TOAST])
        names = [c.name for c in _run(select_channels("u1", None, fallback))]
        self.assertEqual(names, [ChannelName.TOAST])


if __name__ == "__main__":
    unittest.main(verbosity=2)
