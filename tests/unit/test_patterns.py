"""Unit tests for the pattern catalog."""

import pytest

from secureapi.core.exceptions import ConfigurationError
from secureapi.core.models import Policy, SecretKind
from secureapi.core.patterns import PatternCatalog, SecretPattern
from tests.conftest import AWS_KEY, JWT, MONGO_URI, OPENAI_KEY, STRIPE_KEY, UPPER_TOKEN


@pytest.mark.unit
class TestSecretPattern:
    """Test SecretPattern class."""

    def test_pattern_creation(self):
        """Test creating a secret pattern."""
        pattern = SecretPattern(
            name="AWS Key",
            pattern="AKIA[A-Z0-9]{16}",
            kind="aws_key",
            policy="refactor",
            description="AWS access key",
            provider_tag="aws",
        )

        assert pattern.name == "AWS Key"
        assert pattern.kind == SecretKind.AWS_KEY
        assert pattern.policy == Policy.REFACTOR
        assert pattern.provider_tag == "AWS"

    def test_from_config_token_shape(self):
        """Test prefix + charset entries with length bounds."""
        pattern = SecretPattern.from_config({
            "name": "hex4",
            "kind": "generic_token",
            "prefixes": ["id_"],
            "charset": "A-F",
            "min_length": 4,
            "max_length": 4,
        })

        assert pattern.regex.fullmatch("id_ABCD")
        assert not pattern.regex.fullmatch("id_ABCDE")
        assert not pattern.regex.fullmatch("ABCD")
        assert pattern.policy == Policy.REDACT

    def test_alnum_boundary(self):
        """Test matches cannot start or end inside a longer word."""
        pattern = SecretPattern.from_config({
            "name": "aws",
            "kind": "aws_key",
            "prefixes": ["AKIA"],
            "charset": "A-Z0-9",
            "min_length": 16,
            "max_length": 16,
        })

        assert pattern.regex.search(f'key = "{AWS_KEY}"')
        assert not pattern.regex.search(f"X{AWS_KEY}")
        assert not pattern.regex.search(f"{AWS_KEY}9")

    def test_boundary_none(self):
        pattern = SecretPattern.from_config({
            "name": "email",
            "kind": "email",
            "pattern": r"[a-z]+@[a-z]+\.[a-z]{2,}",
            "boundary": "none",
        })

        assert pattern.regex.search("mailto:jane@example.com").group(0) == "jane@example.com"

    @pytest.mark.parametrize(
        "definition",
        [
            {"kind": "email", "pattern": "x"},
            {"name": "no-shape", "kind": "email"},
            {"name": "bad-kind", "kind": "password", "pattern": "x"},
            {"name": "no-kind", "pattern": "x"},
            {"name": "bad-regex", "kind": "email", "pattern": "[unclosed"},
            {"name": "bad-boundary", "kind": "email", "pattern": "x", "boundary": "word"},
            {"name": "bad-policy", "kind": "email", "pattern": "x", "policy": "delete"},
        ],
    )
    def test_invalid_definitions(self, definition):
        """Test every malformed entry surfaces as ConfigurationError."""
        with pytest.raises(ConfigurationError):
            SecretPattern.from_config(definition)


@pytest.mark.unit
class TestPatternCatalog:
    """Test PatternCatalog class."""

    def test_bundled_catalog_order(self, catalog):
        """Test the bundled table loads in priority order."""
        names = [pattern.name for pattern in catalog]

        assert len(catalog) == 8
        assert names[:3] == ["openai_api_key", "stripe_api_key", "aws_access_key"]
        assert names[-2:] == ["generic_upper_token", "generic_mixed_token"]

    def test_load_custom_file(self, patterns_config):
        """Test loading a user-supplied table."""
        catalog = PatternCatalog.load(patterns_config)

        assert len(catalog) == 2
        assert catalog.provider_tag(SecretKind.OPENAI_KEY) == "OPENAI"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            PatternCatalog.load(tmp_path / "missing.yaml")

    def test_load_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("patterns: [unclosed\n")

        with pytest.raises(ConfigurationError):
            PatternCatalog.load(config_file)

    def test_empty_table_rejected(self):
        with pytest.raises(ConfigurationError):
            PatternCatalog.from_dict({"patterns": []})

    @pytest.mark.parametrize(
        "value,kind",
        [
            (OPENAI_KEY, SecretKind.OPENAI_KEY),
            ("sk-proj-abcdefghijklmnopqrstuvwxyz012345", SecretKind.OPENAI_KEY),
            (STRIPE_KEY, SecretKind.STRIPE_KEY),
            (AWS_KEY, SecretKind.AWS_KEY),
            (JWT, SecretKind.JWT),
            (MONGO_URI, SecretKind.CONNECTION_STRING),
            ("jane.doe@example.com", SecretKind.EMAIL),
            (UPPER_TOKEN, SecretKind.GENERIC_TOKEN),
        ],
    )
    def test_scan_detects_each_shape(self, catalog, value, kind):
        """Test each bundled shape is found in a quoted literal."""
        matches = list(catalog.scan(f'value = "{value}"\n', "settings.py"))

        assert len(matches) == 1
        assert matches[0].kind == kind
        assert matches[0].raw_text == value
        assert matches[0].source_file == "settings.py"

    def test_earlier_pattern_claims_span(self, catalog):
        """Test an AWS key is not reported again as a generic token."""
        matches = list(catalog.scan(f"{AWS_KEY} {UPPER_TOKEN}"))

        assert [m.kind for m in matches] == [SecretKind.AWS_KEY, SecretKind.GENERIC_TOKEN]
        assert matches[0].span == (0, len(AWS_KEY))

    def test_connection_string_swallows_embedded_email(self, catalog):
        """Test credentials inside a URI are not split off as an email."""
        uri = "postgres://user:pw@db.example.com:5432/app"

        matches = list(catalog.scan(f"DATABASE_URL={uri}"))

        assert len(matches) == 1
        assert matches[0].kind == SecretKind.CONNECTION_STRING
        assert matches[0].raw_text == uri

    def test_overlong_aws_key_is_generic(self, catalog):
        """Test the AWS shape needs a boundary after exactly 16 characters."""
        matches = list(catalog.scan(f"{AWS_KEY}X"))

        assert len(matches) == 1
        assert matches[0].kind == SecretKind.GENERIC_TOKEN

    def test_scan_is_restartable(self, catalog):
        """Test two scans of the same text produce the same matches."""
        text = f"a = '{OPENAI_KEY}'\nb = 'ops@example.com'\n"

        assert list(catalog.scan(text)) == list(catalog.scan(text))

    def test_scan_clean_text(self, catalog):
        assert list(catalog.scan("def add(a, b):\n    return a + b\n")) == []

    def test_classify(self, catalog):
        """Test classify honours priority and the policy filter."""
        assert catalog.classify(OPENAI_KEY).name == "openai_api_key"
        assert catalog.classify(MONGO_URI, Policy.REFACTOR).kind == SecretKind.CONNECTION_STRING
        assert catalog.classify("jane@example.com").kind == SecretKind.EMAIL
        assert catalog.classify("jane@example.com", Policy.REFACTOR) is None
        assert catalog.classify(f"prefix {OPENAI_KEY}") is None

    def test_provider_tag(self, catalog):
        assert catalog.provider_tag(SecretKind.STRIPE_KEY) == "STRIPE"
        assert catalog.provider_tag(SecretKind.EMAIL) is None
