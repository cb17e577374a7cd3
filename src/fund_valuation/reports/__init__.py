"""Report generators."""

from .portfolio_report import generate_portfolio_report

__all__ = ["generate_portfolio_report"]
