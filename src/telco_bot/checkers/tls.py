"""
TLS configuration compliance.

Looks for disabled certificate verification, weak protocol versions, caps that
prevent TLS 1.3 and informational markers (hardcoded configs, post-quantum key
exchange) in Go, Python, JavaScript/TypeScript and C++ sources.
"""
from __future__ import annotations

from typing import Dict, List

from ..findings import Severity
from ..github.models import Repository
from ..pipeline import ScanSummary
from ..scanner import CentralizedConfigFilter, LanguageProfile, PatternRule
from .content import ContentChecker

CRITICAL, HIGH, MEDIUM, INFO = (s.value for s in Severity)

HARDCODED_TLS_CONFIG = 'Hardcoded tls.Config'
TLS_PROFILE_MARKER = 'TLSSecurityProfile'

GO_RULES = [
    PatternRule(CRITICAL, 'InsecureSkipVerify: true', 'Disables TLS certificate verification (MITM vulnerability)',
                r'InsecureSkipVerify\s*:\s*true', 'InsecureSkipVerify true'),
    PatternRule(HIGH, 'MinVersion TLS 1.0', 'TLS 1.0 has known vulnerabilities (POODLE, BEAST)',
                r'MinVersion\s*[:=]\s*.*VersionTLS10', 'MinVersion VersionTLS10'),
    PatternRule(HIGH, 'MinVersion TLS 1.1', 'TLS 1.1 has known vulnerabilities',
                r'MinVersion\s*[:=]\s*.*VersionTLS11', 'MinVersion VersionTLS11'),
    PatternRule(HIGH, 'MaxVersion TLS 1.0', 'Limits connections to weak TLS 1.0',
                r'MaxVersion\s*[:=]\s*.*VersionTLS10', 'MaxVersion VersionTLS10'),
    PatternRule(HIGH, 'MaxVersion TLS 1.1', 'Limits connections to weak TLS 1.1',
                r'MaxVersion\s*[:=]\s*.*VersionTLS11', 'MaxVersion VersionTLS11'),
    PatternRule(MEDIUM, 'MaxVersion TLS 1.2', 'Prevents TLS 1.3 negotiation',
                r'MaxVersion\s*[:=]\s*.*VersionTLS12', 'MaxVersion VersionTLS12'),
    PatternRule(INFO, 'MinVersion TLS 1.3', 'Forces TLS 1.3 (may break older clients)',
                r'MinVersion\s*[:=]\s*.*VersionTLS13', 'MinVersion VersionTLS13'),
    PatternRule(INFO, 'PreferServerCipherSuites', 'Deprecated in Go 1.17+ (ignored)',
                r'PreferServerCipherSuites\s*:\s*true', 'PreferServerCipherSuites true'),
    PatternRule(INFO, 'CurvePreferences', 'Explicit curve configuration (PQC readiness indicator)',
                r'CurvePreferences\s*[:=]', 'CurvePreferences'),
    PatternRule(INFO, HARDCODED_TLS_CONFIG, 'Hardcoded TLS config (review for API server TLS profile adherence)',
                r'tls\.Config\s*\{', 'tls.Config'),
    PatternRule(INFO, 'PQC/ML-KEM patterns', 'Post-Quantum Cryptography adoption (ML-KEM)',
                r'(X25519MLKEM|MLKEM768|mlkem768|crypto/mlkem|NewDecapsulationKey|NewEncapsulationKey)',
                'MLKEM OR mlkem OR X25519MLKEM'),
]

PYTHON_RULES = [
    PatternRule(CRITICAL, 'verify=False', 'Disables TLS certificate verification (MITM vulnerability)',
                r'verify\s*=\s*False', 'verify False'),
    PatternRule(CRITICAL, 'ssl.CERT_NONE', 'Disables certificate verification via ssl module',
                r'CERT_NONE', 'CERT_NONE'),
    PatternRule(CRITICAL, '_create_unverified_context', 'Creates SSL context without certificate verification',
                r'_create_unverified_context', '_create_unverified_context'),
    PatternRule(CRITICAL, 'check_hostname = False', 'Disables hostname verification',
                r'check_hostname\s*=\s*False', 'check_hostname False'),
    PatternRule(HIGH, 'PROTOCOL_TLSv1 (1.0)', 'TLS 1.0 has known vulnerabilities (POODLE, BEAST)',
                r'PROTOCOL_TLSv1[^_]', 'PROTOCOL_TLSv1'),
    PatternRule(HIGH, 'PROTOCOL_TLSv1_1', 'TLS 1.1 has known vulnerabilities',
                r'PROTOCOL_TLSv1_1', 'PROTOCOL_TLSv1_1'),
    PatternRule(MEDIUM, 'maximum_version TLSv1_2', 'Caps maximum TLS version at 1.2, preventing TLS 1.3',
                r'maximum_version.*TLSv1_2', 'maximum_version TLSv1_2'),
    PatternRule(INFO, 'minimum_version TLSv1_3', 'Forces TLS 1.3 (may break older clients)',
                r'minimum_version.*TLSv1_3', 'minimum_version TLSv1_3'),
]

NODE_RULES = [
    PatternRule(CRITICAL, 'rejectUnauthorized: false', 'Disables TLS certificate verification (MITM vulnerability)',
                r'rejectUnauthorized\s*:\s*false', 'rejectUnauthorized false'),
    PatternRule(CRITICAL, 'NODE_TLS_REJECT_UNAUTHORIZED', 'Disables TLS verification via environment variable',
                r'NODE_TLS_REJECT_UNAUTHORIZED', 'NODE_TLS_REJECT_UNAUTHORIZED'),
    PatternRule(HIGH, 'TLSv1_method', 'TLS 1.0 has known vulnerabilities (POODLE, BEAST)',
                r'TLSv1_method', 'TLSv1_method'),
    PatternRule(HIGH, 'TLSv1_1_method', 'TLS 1.1 has known vulnerabilities',
                r'TLSv1_1_method', 'TLSv1_1_method'),
    PatternRule(HIGH, 'minVersion TLS 1.0/1.1', 'Allows weak TLS versions',
                r'minVersion.*TLSv1[^.3]', 'minVersion TLSv1'),
    PatternRule(MEDIUM, 'maxVersion TLSv1.2', 'Caps maximum TLS version at 1.2, preventing TLS 1.3',
                r'maxVersion.*TLSv1\.2', 'maxVersion TLSv1.2'),
    PatternRule(INFO, 'minVersion TLSv1.3', 'Forces TLS 1.3 (may break older clients)',
                r'minVersion.*TLSv1\.3', 'minVersion TLSv1.3'),
]

CPP_RULES = [
    PatternRule(CRITICAL, 'SSL_CTX_set_verify SSL_VERIFY_NONE',
                'Disables TLS certificate verification (MITM vulnerability)',
                r'SSL_CTX_set_verify.*SSL_VERIFY_NONE', 'SSL_VERIFY_NONE'),
    PatternRule(CRITICAL, 'SSL_set_verify SSL_VERIFY_NONE',
                'Disables TLS certificate verification (MITM vulnerability)',
                r'SSL_set_verify.*SSL_VERIFY_NONE', 'SSL_set_verify SSL_VERIFY_NONE'),
    PatternRule(HIGH, 'TLS1_VERSION', 'TLS 1.0 has known vulnerabilities (POODLE, BEAST)',
                r'TLS1_VERSION[^_]', 'TLS1_VERSION'),
    PatternRule(HIGH, 'TLS1_1_VERSION', 'TLS 1.1 has known vulnerabilities',
                r'TLS1_1_VERSION', 'TLS1_1_VERSION'),
    PatternRule(HIGH, 'SSLv3_method', 'SSL 3.0 has known vulnerabilities (POODLE)',
                r'SSLv3_method', 'SSLv3_method'),
    PatternRule(HIGH, 'TLSv1_method', 'TLS 1.0 has known vulnerabilities',
                r'TLSv1_method[^_]', 'TLSv1_method'),
    PatternRule(MEDIUM, 'SSL_CTX_set_max_proto_version TLS1_2', 'Caps maximum TLS version at 1.2',
                r'SSL_CTX_set_max_proto_version.*TLS1_2_VERSION', 'SSL_CTX_set_max_proto_version TLS1_2_VERSION'),
    PatternRule(INFO, 'SSL_CTX_set_min_proto_version TLS1_3', 'Forces TLS 1.3 (may break older clients)',
                r'SSL_CTX_set_min_proto_version.*TLS1_3_VERSION', 'SSL_CTX_set_min_proto_version TLS1_3_VERSION'),
]

GO_PROFILE = LanguageProfile('Go', ('*.go',), GO_RULES, search_language='go')
PYTHON_PROFILE = LanguageProfile('Python', ('*.py',), PYTHON_RULES, search_language='python')
JAVASCRIPT_PROFILE = LanguageProfile('JavaScript', ('*.js', '*.mjs'), NODE_RULES, search_language='javascript')
TYPESCRIPT_PROFILE = LanguageProfile('TypeScript', ('*.ts', '*.mts'), NODE_RULES, search_language='typescript')
CPP_PROFILE = LanguageProfile('C++', ('*.cpp', '*.cc', '*.cxx', '*.h', '*.hpp'), CPP_RULES, search_language='c++')

PROFILES_BY_LANGUAGE: Dict[str, LanguageProfile] = {
    'Go': GO_PROFILE,
    'Python': PYTHON_PROFILE,
    'JavaScript': JAVASCRIPT_PROFILE,
    'TypeScript': TYPESCRIPT_PROFILE,
    'C++': CPP_PROFILE,
}


class TLSComplianceChecker(ContentChecker):
    name = 'tls13'
    title = 'TLS Configuration Compliance Report'
    tracking_issue_title = 'Tracking TLS Configuration Compliance'
    languages = tuple(PROFILES_BY_LANGUAGE)
    blocklist_file = 'tls13-repo-blocklist.txt'
    post_filters = (CentralizedConfigFilter(HARDCODED_TLS_CONFIG, TLS_PROFILE_MARKER),)

    def profiles_for(self, repo: Repository) -> List[LanguageProfile]:
        profile = PROFILES_BY_LANGUAGE.get(repo.language or '')
        return [profile] if profile else []

    def report_header(self, summary: ScanSummary) -> List[str]:
        return [
            f"**Scan Mode:** {self.mode.value}  ",
            f"**Languages:** {', '.join(PROFILES_BY_LANGUAGE)}",
        ]

    def report_footer(self, summary: ScanSummary) -> List[str]:
        return [
            "## Severity Guide",
            "",
            "- **CRITICAL**: certificate or hostname verification disabled",
            "- **HIGH**: TLS 1.0/1.1 or SSL 3.0 allowed",
            "- **MEDIUM**: maximum version capped below TLS 1.3",
            "- **INFO**: review items (forced TLS 1.3, hardcoded configs, PQC adoption)",
            "",
            f"Hardcoded `tls.Config` usages in files that reference `{TLS_PROFILE_MARKER}` are not reported.",
        ]
