"""Unit tests for services.endpoint_rewriter -- relay rewrite rules per scheme."""

import base64

import pytest

from mergesub.services.diagnostics import DiagnosticKind
from mergesub.services.endpoint_rewriter import (
    STRATEGIES,
    RelayTarget,
    UriRewriter,
    VmessRewriter,
    parse_port,
    rewrite_content,
    rewrite_line,
)
from mergesub.services.line_codec import Scheme

RELAY = RelayTarget(address="1.2.3.4", port="8443")


# ============================================================================
# RelayTarget
# ============================================================================


class TestRelayTarget:
    @pytest.mark.parametrize(
        "address,port",
        [(None, None), ("1.2.3.4", None), (None, "443"), ("", "443"), ("1.2.3.4", "  ")],
    )
    def test_incomplete_target_is_none(self, address, port) -> None:
        assert RelayTarget.build(address, port) is None

    def test_build_trims(self) -> None:
        assert RelayTarget.build(" cdn.example.com ", " 2053 ") == RelayTarget("cdn.example.com", "2053")

    def test_ipv6_uri_host_is_bracketed(self) -> None:
        assert RelayTarget("2606:4700::1", "443").uri_host == "[2606:4700::1]"
        assert RelayTarget("1.2.3.4", "443").uri_host == "1.2.3.4"

    def test_parse_port_leading_digits(self) -> None:
        assert parse_port("8443") == 8443
        assert parse_port("2053abc") == 2053
        with pytest.raises(ValueError):
            parse_port("abc")


# ============================================================================
# No-op Laws
# ============================================================================


class TestNoRelay:
    def test_content_unchanged_without_target(self, make_vmess) -> None:
        content = "  " + make_vmess() + "  \n\nvless://id@h:443?type=ws&security=tls\r"
        assert rewrite_content(content, None) == content

    def test_line_unchanged_without_target(self, make_vmess) -> None:
        line = make_vmess()
        assert rewrite_line(line, None) == line


# ============================================================================
# vmess
# ============================================================================


class TestVmess:
    def test_ws_tls_empty_host_rewritten(self, make_vmess, decode_vmess) -> None:
        line = make_vmess(host="")
        before = decode_vmess(line)
        after = decode_vmess(rewrite_line(line, RELAY))

        assert after["add"] == "1.2.3.4"
        assert after["port"] == 8443
        for key in before:
            if key not in ("add", "port"):
                assert after[key] == before[key]

    def test_xhttp_rewritten(self, make_vmess, decode_vmess) -> None:
        assert decode_vmess(rewrite_line(make_vmess(net="xhttp"), RELAY))["add"] == "1.2.3.4"

    def test_host_differs_from_address_rewritten(self, make_vmess, decode_vmess) -> None:
        line = make_vmess(add="origin.example.com", host="cdn-front.example.com")
        after = decode_vmess(rewrite_line(line, RELAY))
        assert after["add"] == "1.2.3.4"
        assert after["host"] == "cdn-front.example.com"

    def test_host_pinned_to_address_untouched(self, make_vmess) -> None:
        line = make_vmess(add="origin.example.com", host="origin.example.com")
        assert rewrite_line(line, RELAY) == line

    @pytest.mark.parametrize("net", ["tcp", "grpc", "kcp"])
    def test_other_transports_untouched(self, make_vmess, net) -> None:
        line = make_vmess(net=net)
        assert rewrite_line(line, RELAY) == line

    def test_without_tls_untouched(self, make_vmess) -> None:
        line = make_vmess(tls="")
        assert rewrite_line(line, RELAY) == line

    def test_non_ascii_name_survives(self, make_vmess, decode_vmess) -> None:
        after = decode_vmess(rewrite_line(make_vmess(ps="香港 01"), RELAY))
        assert after["ps"] == "香港 01"

    def test_broken_payload_reported(self, events, observer) -> None:
        line = "vmess://not-base64!!"
        assert rewrite_line(line, RELAY, observer) == line
        assert [e.kind for e in events] == [DiagnosticKind.vmess_rewrite]

    def test_non_object_payload_reported(self, events, observer) -> None:
        line = "vmess://WzEsMl0="  # "[1,2]"
        assert rewrite_line(line, RELAY, observer) == line
        assert events[0].kind == DiagnosticKind.vmess_rewrite

    def test_deeply_nested_payload_reported(self, events, observer) -> None:
        nested = "[" * 200_000 + "]" * 200_000
        line = "vmess://" + base64.b64encode(nested.encode()).decode()
        assert rewrite_line(line, RELAY, observer) == line
        assert [e.kind for e in events] == [DiagnosticKind.vmess_rewrite]

    def test_unparseable_relay_port_reported(self, make_vmess, events, observer) -> None:
        line = make_vmess()
        assert rewrite_line(line, RelayTarget("1.2.3.4", "abc"), observer) == line
        assert events[0].kind == DiagnosticKind.vmess_rewrite


# ============================================================================
# vless / trojan
# ============================================================================


class TestUriSchemes:
    def test_documented_vless_example(self) -> None:
        line = "vless://uuid@old.example.com:443?type=ws&security=tls&host="
        assert (
            rewrite_line(line, RelayTarget("9.9.9.9", "2053"))
            == "vless://uuid@9.9.9.9:2053?type=ws&security=tls&host="
        )

    def test_trojan_path_query_fragment_preserved(self) -> None:
        line = "trojan://pw@origin.example.com:443/ws?security=tls&type=xhttp&sni=a.example.com#HK%20%E8%8A%82%E7%82%B9"
        assert rewrite_line(line, RELAY) == (
            "trojan://pw@1.2.3.4:8443/ws?security=tls&type=xhttp&sni=a.example.com#HK%20%E8%8A%82%E7%82%B9"
        )

    def test_host_param_differs_rewritten(self) -> None:
        line = "vless://uuid@origin.example.com:443?type=ws&security=tls&host=front.example.com"
        assert rewrite_line(line, RELAY).startswith("vless://uuid@1.2.3.4:8443?")

    def test_host_param_matching_hostname_untouched(self) -> None:
        line = "vless://uuid@origin.example.com:443?type=ws&security=tls&host=origin.example.com"
        assert rewrite_line(line, RELAY) == line

    def test_host_param_compared_to_lowercased_hostname(self) -> None:
        mixed = "vless://uuid@Origin.example.com:443?type=ws&security=tls&host=Origin.example.com"
        assert rewrite_line(mixed, RELAY).startswith("vless://uuid@1.2.3.4:8443?")
        upper = "vless://uuid@ORIGIN.example.com:443?type=ws&security=tls&host=origin.example.com"
        assert rewrite_line(upper, RELAY) == upper

    @pytest.mark.parametrize(
        "query",
        ["type=tcp&security=tls", "type=ws&security=reality", "type=ws", "security=tls", "type=wss&security=tls"],
    )
    def test_non_matching_transport_untouched(self, query) -> None:
        line = f"vless://uuid@origin.example.com:443?{query}"
        assert rewrite_line(line, RELAY) == line

    def test_last_at_sign_splits_userinfo(self) -> None:
        line = "trojan://p@ss@origin.example.com:443?type=ws&security=tls"
        assert rewrite_line(line, RELAY) == "trojan://p@ss@1.2.3.4:8443?type=ws&security=tls"

    def test_ipv6_authority_passed_through(self, events, observer) -> None:
        line = "vless://uuid@[2001:db8::1]:443?type=ws&security=tls"
        assert rewrite_line(line, RELAY, observer) == line
        assert [e.kind for e in events] == [DiagnosticKind.unsupported_authority]

    def test_missing_port_passed_through(self, events, observer) -> None:
        line = "vless://uuid@origin.example.com?type=ws&security=tls"
        assert rewrite_line(line, RELAY, observer) == line
        assert events[0].kind == DiagnosticKind.unsupported_authority

    def test_malformed_uri_reported(self, events, observer) -> None:
        line = "vless://uuid@[broken?type=ws&security=tls"
        assert rewrite_line(line, RELAY, observer) == line
        assert events[0].kind == DiagnosticKind.uri_rewrite

    def test_ipv6_relay_bracketed(self) -> None:
        line = "vless://uuid@origin.example.com:443?type=ws&security=tls"
        assert rewrite_line(line, RelayTarget("2606:4700::1", "443")) == (
            "vless://uuid@[2606:4700::1]:443?type=ws&security=tls"
        )


# ============================================================================
# Dispatch and Content
# ============================================================================


class TestDispatch:
    def test_strategy_table(self) -> None:
        assert isinstance(STRATEGIES[Scheme.vmess], VmessRewriter)
        assert isinstance(STRATEGIES[Scheme.vless], UriRewriter)
        assert isinstance(STRATEGIES[Scheme.trojan], UriRewriter)

    @pytest.mark.parametrize(
        "line",
        [
            "ss://YWVzLTI1Ni1nY206cHc@origin.example.com:8388#ss",
            "hysteria2://pw@origin.example.com:443?sni=x&type=ws&security=tls",
            "socks5://u:p@origin.example.com:1080",
            "not a link at all",
        ],
    )
    def test_other_schemes_untouched(self, line) -> None:
        assert rewrite_line(line, RELAY) == line

    def test_content_lines_trimmed_and_blanks_kept(self) -> None:
        content = "  ss://a@h:1  \n\n vless://u@h.example.com:443?type=ws&security=tls \r\n"
        assert rewrite_content(content, RELAY) == (
            "ss://a@h:1\n\nvless://u@1.2.3.4:8443?type=ws&security=tls\n"
        )
