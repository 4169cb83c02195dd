import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mcpdeck.models import Parameter, ServerDescriptor
from mcpdeck.placeholders import (
    Literal,
    Matched,
    extract_parameters,
    parse,
    parse_parameter,
    server_parameters,
    unique_parameters,
)


class TestPlaceholderParse(unittest.TestCase):
    def test_name_and_type(self) -> None:
        parsed = parse("{{dbPath@string}}")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.name, "dbPath")
        self.assertEqual(parsed.type, "string")
        self.assertEqual(parsed.description, "")

    def test_description(self) -> None:
        parsed = parse("{{db@string::Path to the SQLite file}}")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.description, "Path to the SQLite file")

    def test_empty_description(self) -> None:
        parsed = parse("{{db@string::}}")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.description, "")

    def test_literal(self) -> None:
        self.assertEqual(parse("--verbose"), Literal("--verbose"))
        self.assertEqual(parse(""), Literal(""))

    def test_unknown_type_is_not_rejected(self) -> None:
        parsed = parse("{{x@banana}}")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.type, "banana")

    def test_placeholder_inside_larger_string(self) -> None:
        parsed = parse("prefix-{{x@string}}-suffix")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.name, "x")
        self.assertEqual((parsed.start, parsed.end), (7, 19))

    def test_malformed_candidates(self) -> None:
        for template in ["{{x}}", "{{@string}}", "{{x@}}", "{{x@string", "{{x@string:desc}}", "{x@string}"]:
            with self.subTest(template=template):
                self.assertIsInstance(parse(template), Literal)

    def test_first_well_formed_candidate_wins(self) -> None:
        parsed = parse("{{broken}} {{a@list}} {{b@string}}")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.name, "a")

    def test_braces_end_a_name(self) -> None:
        parsed = parse("{{x}}{{y@string}}")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.name, "y")
        self.assertEqual(parsed.start, 5)

    def test_extra_opening_brace(self) -> None:
        parsed = parse("{{{token@string}}")
        self.assertIsInstance(parsed, Matched)
        self.assertEqual(parsed.name, "token")

    def test_non_string_input_never_raises(self) -> None:
        self.assertEqual(parse(None), Literal(""))
        self.assertEqual(parse(42), Literal("42"))

    def test_parse_parameter(self) -> None:
        self.assertEqual(parse_parameter("{{n@number::count}}"), Parameter("n", "number", "count"))
        self.assertIsNone(parse_parameter("plain"))


class TestExtractParameters(unittest.TestCase):
    def test_skips_literals_and_keeps_order(self) -> None:
        params = extract_parameters(["{{db@string::path}}", "--verbose"])
        self.assertEqual(params, [Parameter(name="db", type="string", description="path")])

    def test_order_follows_templates(self) -> None:
        params = extract_parameters(["-a", "{{one@string}}", "-b", "{{two@list}}", "{{three@object}}"])
        self.assertEqual([p.name for p in params], ["one", "two", "three"])

    def test_duplicates_are_kept(self) -> None:
        params = extract_parameters(["{{x@string}}", "{{x@string::again}}"])
        self.assertEqual(len(params), 2)
        self.assertEqual(unique_parameters(params), [Parameter("x", "string", "")])

    def test_empty_input(self) -> None:
        self.assertEqual(extract_parameters([]), [])
        self.assertEqual(extract_parameters(None), [])

    def test_server_parameters(self) -> None:
        server = ServerDescriptor(
            key="sqlite",
            command="uvx",
            args=["mcp-server-sqlite", "--db-path", "{{dbPath@string::Path to the database}}"],
            env={"API_TOKEN": "{{token@string}}", "MODE": "readonly"},
        )
        arg_params, env_params = server_parameters(server)
        self.assertEqual([p.name for p in arg_params], ["dbPath"])
        self.assertEqual([p.name for p in env_params], ["token"])


if __name__ == "__main__":
    unittest.main()
