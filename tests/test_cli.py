import argparse

import pytest

from telco_bot.cli import (
    CommandParser, add_common_arguments, add_mode_argument, apply_common_arguments, load_config, missing_tools,
    require_tools,
)
from telco_bot.config import DEFAULT_ORGS, TelcoBotConfig
from telco_bot.pipeline import ScanMode


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv('GITHUB_TOKEN', 'ghp_test')
    monkeypatch.delenv('TELCO_BOT_ORGS', raising=False)
    monkeypatch.delenv('TELCO_BOT_INACTIVITY_DAYS', raising=False)
    monkeypatch.setenv('TELCO_BOT_CACHE_DIR', str(tmp_path / 'caches'))
    monkeypatch.setenv('TELCO_BOT_REPORT_DIR', str(tmp_path / 'reports'))
    return TelcoBotConfig()


def _parser(config, **kwargs):
    parser = CommandParser(prog='scan')
    add_common_arguments(parser, config, **kwargs)
    return parser


def test_config_requires_token(monkeypatch):
    monkeypatch.delenv('GITHUB_TOKEN', raising=False)
    with pytest.raises(ValueError):
        TelcoBotConfig()
    assert TelcoBotConfig(require_token=False).GITHUB_TOKEN is None


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv('GITHUB_TOKEN', 'x')
    monkeypatch.setenv('TELCO_BOT_ORGS', 'openshift, openshift-kni ,')
    monkeypatch.setenv('TELCO_BOT_INACTIVITY_DAYS', '30')
    config = TelcoBotConfig()
    assert config.ORGS == ['openshift', 'openshift-kni']
    assert config.INACTIVITY_DAYS == 30


def test_config_rejects_non_positive_days(monkeypatch):
    monkeypatch.setenv('GITHUB_TOKEN', 'x')
    monkeypatch.setenv('TELCO_BOT_INACTIVITY_DAYS', '0')
    with pytest.raises(ValueError):
        TelcoBotConfig()


def test_default_orgs(config):
    assert config.ORGS == DEFAULT_ORGS


def test_invalid_argument_exits_with_one(config):
    with pytest.raises(SystemExit) as exc:
        _parser(config).parse_args(['--days', 'soon'])
    assert exc.value.code == 1


def test_create_issues_only_for_per_repo_scanners(config):
    with pytest.raises(SystemExit):
        _parser(config).parse_args(['--create-issues'])
    assert _parser(config, per_repo_issues=True).parse_args(['--create-issues']).create_issues


def test_mode_argument():
    parser = CommandParser(prog='scan')
    add_mode_argument(parser, ScanMode.CLONE)
    assert parser.parse_args([]).mode == ScanMode.CLONE
    assert parser.parse_args(['--mode', 'api']).mode == ScanMode.API
    with pytest.raises(SystemExit):
        parser.parse_args(['--mode', 'ftp'])


def test_apply_common_arguments(config, tmp_path):
    args = _parser(config).parse_args(['--org', 'openshift', '--org', 'redhatci', '--days', '90',
                                       '--token', 'ghp_cli', '--output-dir', str(tmp_path / 'out')])
    apply_common_arguments(args, config)

    assert config.ORGS == ['openshift', 'redhatci']
    assert config.INACTIVITY_DAYS == 90
    assert config.GITHUB_TOKEN == 'ghp_cli'
    assert (tmp_path / 'out').is_dir()
    assert (tmp_path / 'caches').is_dir()


def test_token_flag_supplies_missing_token(tmp_path, monkeypatch):
    monkeypatch.delenv('GITHUB_TOKEN', raising=False)
    monkeypatch.setenv('TELCO_BOT_CACHE_DIR', str(tmp_path / 'caches'))
    monkeypatch.setenv('TELCO_BOT_REPORT_DIR', str(tmp_path / 'reports'))
    config = load_config()

    apply_common_arguments(_parser(config).parse_args(['--token', 'ghp_cli']), config)
    assert config.GITHUB_TOKEN == 'ghp_cli'

    with pytest.raises(SystemExit) as exc:
        apply_common_arguments(_parser(config).parse_args([]), load_config())
    assert exc.value.code == 1


def test_non_positive_days_exit_with_one(config):
    args = _parser(config).parse_args(['--days', '0'])
    with pytest.raises(SystemExit) as exc:
        apply_common_arguments(args, config)
    assert exc.value.code == 1


def test_require_tools(monkeypatch):
    monkeypatch.setattr('telco_bot.cli.shutil.which', lambda tool: None if tool == 'git' else f'/usr/bin/{tool}')
    assert missing_tools(['git', 'gh']) == ['git']
    require_tools(['gh'])
    with pytest.raises(SystemExit) as exc:
        require_tools(['git'], hint='Install git or use --mode api')
    assert exc.value.code == 1


def test_quiet_flag(config):
    args = _parser(config).parse_args(['-q'])
    assert isinstance(args, argparse.Namespace)
    assert args.quiet and args.verbose == 1
