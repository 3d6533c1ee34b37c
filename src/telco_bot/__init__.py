"""Organization-wide compliance scanners for GitHub repositories.

The package exposes a single scan pipeline (:class:`telco_bot.pipeline.ScanPipeline`)
driven by pluggable checkers (Go toolchain version, TLS configuration, deprecated
Go dependencies, UBI base images, golangci-lint pins), plus the caches, issue
lifecycle management and report rendering they share.

Example usage:
    ```python
    from telco_bot.config import TelcoBotConfig
    from telco_bot.github import GitHubClient
    from telco_bot.pipeline import ScanPipeline
    from telco_bot.checkers.go_version import GoVersionChecker

    config = TelcoBotConfig()
    with GitHubClient(token=config.GITHUB_TOKEN) as client:
        pipeline = ScanPipeline.from_config(config, client, GoVersionChecker(client))
        summary = pipeline.run(config.ORGS)
    ```
"""

__version__ = '0.1.0'
