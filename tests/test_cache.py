import unittest
from datetime import date
from unittest.mock import MagicMock, patch

import redis

from agenda.cache import Cache, build_appointment_list_key, invalidate_appointment_cache


class CacheTests(unittest.TestCase):
    def test_values_round_trip_as_json(self) -> None:
        client = MagicMock()
        cache = Cache(client)

        self.assertTrue(cache.set("k", {"day": date(2024, 6, 10)}, ttl=60))

        client.setex.assert_called_once_with("k", 60, '{"day": "2024-06-10"}')

        client.get.return_value = '{"day": "2024-06-10"}'
        self.assertEqual(cache.get("k"), {"day": "2024-06-10"})

    def test_redis_errors_fail_open(self) -> None:
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        client.setex.side_effect = redis.ConnectionError("down")
        client.scan_iter.side_effect = redis.ConnectionError("down")
        cache = Cache(client)

        self.assertIsNone(cache.get("k"))
        self.assertFalse(cache.set("k", [1]))
        self.assertEqual(cache.delete_pattern("appointments:*"), 0)

    def test_unreachable_server_disables_cache(self) -> None:
        with patch("agenda.cache.get_redis_client", side_effect=redis.ConnectionError("refused")):
            cache = Cache()

            self.assertIsNone(cache.get("k"))
            self.assertFalse(cache.set("k", 1))

    def test_delete_pattern_removes_matching_keys(self) -> None:
        client = MagicMock()
        client.scan_iter.return_value = iter(["appointments:u:any:any:all", "appointments:u:2024-06-10:any:all"])
        client.delete.return_value = 2

        deleted = Cache(client).delete_pattern("appointments:u:*")

        self.assertEqual(deleted, 2)
        client.scan_iter.assert_called_once_with(match="appointments:u:*")


class AppointmentCacheKeyTests(unittest.TestCase):
    def test_list_key_includes_filters(self) -> None:
        self.assertEqual(build_appointment_list_key("u"), "appointments:u:any:any:all")
        self.assertEqual(
            build_appointment_list_key("u", date(2024, 6, 1), date(2024, 6, 30), "confirmed"),
            "appointments:u:2024-06-01:2024-06-30:confirmed",
        )
        self.assertEqual(
            build_appointment_list_key("u", service_id="s1", client_name=None),
            "appointments:u:any:any:all:service_id=s1",
        )

    def test_invalidation_drops_every_list_of_the_practitioner(self) -> None:
        backend = MagicMock()
        backend.delete_pattern.return_value = 3

        deleted = invalidate_appointment_cache("u", [date(2024, 6, 10), None], backend=backend)

        self.assertEqual(deleted, 3)
        backend.delete_pattern.assert_called_once_with("appointments:u:*")


if __name__ == "__main__":
    unittest.main()
