import unittest

from services.api.app.engine import messages


class ParseMessageTests(unittest.TestCase):
    def test_register_client_reads_wire_names(self) -> None:
        message = messages.parse_message('{"type": "register_client", "clientId": "abc", "alias": "Alice"}')
        self.assertIsInstance(message, messages.RegisterClient)
        self.assertEqual(message.client_id, "abc")
        self.assertEqual(message.display_name, "Alice")

    def test_register_client_identity_is_optional(self) -> None:
        message = messages.parse_message('{"type": "register_client", "alias": "Bob"}')
        self.assertIsNone(message.client_id)

    def test_vote_keeps_json_type(self) -> None:
        self.assertEqual(messages.parse_message('{"type": "cast_vote", "vote": 8}').vote, 8)
        self.assertEqual(messages.parse_message('{"type": "cast_vote", "vote": 2.5}').vote, 2.5)
        self.assertEqual(messages.parse_message('{"type": "cast_vote", "vote": "XL"}').vote, "XL")

    def test_extra_fields_are_ignored(self) -> None:
        message = messages.parse_message('{"type": "heartbeat", "clientId": "abc", "ts": 1}')
        self.assertIsInstance(message, messages.Heartbeat)

    def test_invalid_json_is_malformed(self) -> None:
        with self.assertRaises(messages.MalformedMessage):
            messages.parse_message("not json")

    def test_missing_type_is_malformed(self) -> None:
        for raw in ('{"vote": 3}', "[1, 2]", '{"type": 7}'):
            with self.subTest(raw=raw):
                with self.assertRaises(messages.MalformedMessage):
                    messages.parse_message(raw)

    def test_odd_vote_and_deck_values_pass_through_to_the_engine(self) -> None:
        self.assertEqual(messages.parse_message('{"type": "cast_vote", "vote": [1]}').vote, [1])
        self.assertEqual(messages.parse_message('{"type": "change_deck", "deck": 5}').deck, 5)

    def test_wrong_alias_type_is_malformed(self) -> None:
        with self.assertRaises(messages.MalformedMessage):
            messages.parse_message('{"type": "register_client", "alias": {"x": 1}}')

    def test_unknown_type_is_reported_separately(self) -> None:
        with self.assertRaises(messages.UnknownMessageType) as ctx:
            messages.parse_message('{"type": "dance"}')
        self.assertEqual(ctx.exception.message_type, "dance")

    def test_bytes_payloads_are_accepted(self) -> None:
        message = messages.parse_message(b'{"type": "start_session"}')
        self.assertIsInstance(message, messages.StartSession)


if __name__ == "__main__":
    unittest.main()
