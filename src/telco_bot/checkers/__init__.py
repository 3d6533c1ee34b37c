"""Checker plug-ins for :class:`telco_bot.pipeline.ScanPipeline`."""
