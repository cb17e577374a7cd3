"""Configuration management for the fund valuation engine."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

# Symbols quoted on every refresh when no tokens file exists yet.
DEFAULT_TRACKED_SYMBOLS = (
    "BTC,ETH,GMX,ALT,FET,LIT,SHADOW,KNTQ,BUDDY,VDO,XPL,XMR,S,HYPE,LOOP,PUMP,HFUN,PIP,LEO,"
    "PURR,CETUS,ONDO,POPCAT,ENS,BEAM,ENA,RAY,EIGEN,HIGHER,KMNO,JLP,MOG,W,ZYN,AERO,STX,XRP,"
    "VIRTUAL,CRO,TON,ICP,LTC,BNKR,FIL,HBAR,OKB,INJ,TIA,SUI,SEI,WHALES,CANTO,MPLX,ACX,XAI,"
    "PRIME,JUP,MNDE,AGIX,WIF,BANANA,APT,RAM,HNT,ORCA,TAO,JTO,AR,AKT,AGRS,PTF,PYTH,DYDX,BONK,"
    "DMT,XLM,TRX,BCH,ETC,MNT,DOGE,PEPE,FARTCOIN,SPX,SHIB,ASX,RENDER,BNB,AAVE,COMP,SAND,AXS,"
    "MAGIC,PYR,GRAIL,NEAR,GNS,ARB,WOO,UNI,SUSHI,RPL,CRV,FRAX,LINK,OP,ALGB,CVX,JOE,LDO,ATOM,"
    "ALGO,ADA,AVAX,SOL,RAIL,MATIC,DOT,PENDLE,SNX,ORANJE,NEST,SWAP,USDC,VEKITTEN"
).split(",")

DEFAULT_SECTOR = "Uncategorized"


def _default_base_dir() -> Path:
    """Project root, overridable with FUNDVAL_HOME."""
    env = os.environ.get("FUNDVAL_HOME")
    if env:
        return Path(env)
    # __file__ is config.py in src/fund_valuation/, so .parent.parent.parent is the repo root
    return Path(__file__).parent.parent.parent


@dataclass
class Config:
    """Application configuration."""

    base_dir: Path = field(default_factory=_default_base_dir)
    data_dir: Path = field(init=False)
    artifacts_dir: Path = field(init=False)
    db_path: Path = field(init=False)
    tokens_file: Path = field(init=False)

    # Market data
    cmc_api_key: str | None = field(
        default_factory=lambda: os.environ.get("COINMARKETCAP_API_KEY") or None
    )
    cmc_quotes_url: str = "https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest"
    quote_ttl_seconds: float = 60.0
    request_timeout: float = 30.0

    # Positions whose absolute unit count is below this are treated as closed
    dust_threshold: float = 1e-4

    def __post_init__(self) -> None:
        self.data_dir = self.base_dir / "data"
        self.artifacts_dir = self.base_dir / "artifacts"
        db_env = os.environ.get("FUNDVAL_DB")
        self.db_path = Path(db_env) if db_env else self.data_dir / "fund.db"
        self.tokens_file = self.data_dir / "tokens.yaml"

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class TrackedToken:
    """A token quoted on every price refresh."""

    symbol: str
    sector: str = DEFAULT_SECTOR


def load_tokens(config: Config) -> list[TrackedToken]:
    """Load tracked tokens from the YAML file, falling back to the default symbol list."""
    if not config.tokens_file.exists():
        return [TrackedToken(symbol=s) for s in DEFAULT_TRACKED_SYMBOLS]

    with open(config.tokens_file) as f:
        data = yaml.safe_load(f) or {}

    return [
        TrackedToken(
            symbol=str(td["symbol"]).strip().upper(),
            sector=td.get("sector") or DEFAULT_SECTOR,
        )
        for td in data.get("tokens", [])
    ]


def save_tokens(config: Config, tokens: list[TrackedToken]) -> None:
    """Save tracked tokens to the YAML file."""
    data = {
        "tokens": [{"symbol": t.symbol, "sector": t.sector} for t in tokens]
    }
    with open(config.tokens_file, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def get_config() -> Config:
    """Get the default configuration."""
    return Config()
