import pytest
from pydantic import ValidationError

from proxy_forge.errors import ManifestError
from proxy_forge.model.manifest import (
    ChallengeType,
    FirewallRule,
    Manifest,
    SiteSpec,
    load_manifest,
)


def _site(**overrides):
    data = {"domain": "app.example.com", "upstream": "127.0.0.1:3000", "tls": {"email": "ops@example.com"}}
    data.update(overrides)
    return SiteSpec.model_validate(data)


def test_bare_port_upstream_is_loopback():
    site = _site(upstream=3000)
    assert site.upstream == "127.0.0.1:3000"
    assert site.upstream_host == "127.0.0.1"
    assert site.upstream_port == 3000


def test_upstream_scheme_and_trailing_slash_are_dropped():
    assert _site(upstream="http://10.0.0.5:8080/").upstream == "10.0.0.5:8080"


@pytest.mark.parametrize("upstream", ["localhost", "127.0.0.1:0", "127.0.0.1:70000", "host:abc"])
def test_invalid_upstreams_rejected(upstream):
    with pytest.raises(ValidationError):
        _site(upstream=upstream)


def test_domain_and_aliases_lowercased():
    site = _site(domain="App.Example.COM", aliases=["WWW.example.com"])
    assert site.names == ["app.example.com", "www.example.com"]


def test_invalid_domain_rejected():
    with pytest.raises(ValidationError, match="invalid domain"):
        _site(domain="not a domain")


def test_tls_requires_email():
    with pytest.raises(ValidationError, match="tls.email"):
        SiteSpec.model_validate({"domain": "app.example.com", "upstream": 3000})


def test_tls_disabled_needs_no_email():
    site = SiteSpec.model_validate({"domain": "app.example.com", "upstream": 3000, "tls": {"enabled": False}})
    assert not site.tls.enabled


def test_wildcard_requires_dns01():
    with pytest.raises(ValidationError, match="dns-01"):
        _site(domain="*.example.com")


def test_dns01_requires_dns_block():
    with pytest.raises(ValidationError, match="dns block"):
        _site(tls={"email": "ops@example.com", "challenge": "dns-01"})


def test_wildcard_site_name():
    site = _site(
        domain="*.example.com",
        tls={"email": "ops@example.com", "challenge": "dns-01"},
        dns={"provider": "cloudflare"},
    )
    assert site.tls.challenge == ChallengeType.DNS_01
    assert site.site_name == "wildcard.example.com"


def test_firewall_rule_port_range_needs_proto():
    assert FirewallRule(port="6000:6010", proto="udp").port == "6000:6010"
    with pytest.raises(ValidationError, match="explicit proto"):
        FirewallRule(port="6000:6010", proto="any")
    with pytest.raises(ValidationError):
        FirewallRule(port="10:5")


def test_default_firewall_allows_web():
    manifest = Manifest(server="web-1")
    assert [r.port for r in manifest.firewall.rules] == ["80", "443"]
    assert manifest.fail2ban.jails == ["sshd", "nginx-http-auth", "nginx-botsearch"]


def test_name_claimed_twice_rejected(manifest_data):
    manifest_data["sites"][1]["aliases"] = ["www.example.com"]
    with pytest.raises(ValidationError, match="claimed by both"):
        Manifest.model_validate(manifest_data)


def test_get_site_by_alias(manifest):
    assert manifest.get_site("WWW.example.com").domain == "app.example.com"
    assert manifest.get_site("missing.example.com") is None


def test_load_manifest(tmp_path):
    path = tmp_path / "site.yaml"
    path.write_text(
        "server: web-1\n"
        "sites:\n"
        "  - domain: app.example.com\n"
        "    upstream: 3000\n"
        "    tls:\n"
        "      email: ops@example.com\n"
    )
    manifest = load_manifest(path)
    assert manifest.server == "web-1"
    assert manifest.sites[0].upstream == "127.0.0.1:3000"


def test_load_manifest_errors(tmp_path):
    with pytest.raises(ManifestError, match="Cannot read"):
        load_manifest(tmp_path / "missing.yaml")

    bad_yaml = tmp_path / "bad.yaml"
    bad_yaml.write_text("server: [unclosed\n")
    with pytest.raises(ManifestError, match="not valid YAML"):
        load_manifest(bad_yaml)

    not_mapping = tmp_path / "list.yaml"
    not_mapping.write_text("- a\n- b\n")
    with pytest.raises(ManifestError, match="mapping"):
        load_manifest(not_mapping)

    invalid = tmp_path / "invalid.yaml"
    invalid.write_text("sites: []\n")
    with pytest.raises(ManifestError, match="Invalid manifest"):
        load_manifest(invalid)
