"""
Static entity registry: companies, countries, commodities and indices the
pipeline tags headlines with.
"""

from newsradar.analysis.types import EntityEntry

ENTITY_REGISTRY: list[EntityEntry] = [
    # Companies
    EntityEntry(
        id="NVDA", type="company", name="Nvidia",
        aliases=("nvidia", "nvda", "jensen huang"),
        keywords=("gpu", "ai chip"), sector="technology",
        related=("TSM", "AMD", "SMH"),
    ),
    EntityEntry(
        id="AMD", type="company", name="AMD",
        aliases=("advanced micro devices", "amd", "lisa su"),
        keywords=("ryzen",), sector="technology", related=("NVDA", "TSM"),
    ),
    EntityEntry(
        id="TSM", type="company", name="TSMC",
        aliases=("tsmc", "taiwan semiconductor"),
        keywords=("chipmaker", "foundry"), sector="technology",
        related=("NVDA", "taiwan"),
    ),
    EntityEntry(
        id="AAPL", type="company", name="Apple",
        aliases=("apple", "aapl", "tim cook"),
        keywords=("iphone",), sector="technology",
    ),
    EntityEntry(
        id="MSFT", type="company", name="Microsoft",
        aliases=("microsoft", "msft", "satya nadella"),
        keywords=("azure",), sector="technology", related=("OPENAI",),
    ),
    EntityEntry(
        id="GOOGL", type="company", name="Alphabet",
        aliases=("alphabet", "google", "googl"),
        keywords=("youtube",), sector="technology",
    ),
    EntityEntry(
        id="TSLA", type="company", name="Tesla",
        aliases=("tesla", "tsla", "elon musk"),
        keywords=("electric vehicle",), sector="automotive",
    ),
    EntityEntry(
        id="LMT", type="company", name="Lockheed Martin",
        aliases=("lockheed martin", "lockheed"),
        keywords=("f-35", "defense contractor"), sector="defense",
        related=("RTX",),
    ),
    EntityEntry(
        id="RTX", type="company", name="RTX",
        aliases=("raytheon", "rtx"),
        keywords=("patriot missile",), sector="defense", related=("LMT",),
    ),
    EntityEntry(
        id="XOM", type="company", name="ExxonMobil",
        aliases=("exxonmobil", "exxon"),
        keywords=("refinery",), sector="energy", related=("USO",),
    ),
    EntityEntry(
        id="JPM", type="company", name="JPMorgan Chase",
        aliases=("jpmorgan", "jp morgan", "jamie dimon"),
        keywords=(), sector="finance", related=("XLF",),
    ),
    EntityEntry(
        id="COIN", type="company", name="Coinbase",
        aliases=("coinbase",), keywords=(), sector="finance",
        related=("BTC",),
    ),
    EntityEntry(
        id="OPENAI", type="organization", name="OpenAI",
        aliases=("openai", "sam altman", "chatgpt"),
        keywords=(), sector="technology", related=("MSFT",),
    ),
    # Countries
    EntityEntry(
        id="iran", type="country", name="Iran",
        aliases=("iran", "tehran", "iranian"),
        keywords=("irgc", "ayatollah"), related=("israel", "USO"),
    ),
    EntityEntry(
        id="israel", type="country", name="Israel",
        aliases=("israel", "israeli", "netanyahu"),
        keywords=("idf",), related=("iran",),
    ),
    EntityEntry(
        id="russia", type="country", name="Russia",
        aliases=("russia", "russian", "kremlin", "putin"),
        keywords=(), related=("ukraine", "UNG"),
    ),
    EntityEntry(
        id="ukraine", type="country", name="Ukraine",
        aliases=("ukraine", "ukrainian", "kyiv", "zelensky"),
        keywords=(), related=("russia",),
    ),
    EntityEntry(
        id="china", type="country", name="China",
        aliases=("china", "chinese", "beijing", "xi jinping"),
        keywords=(), related=("taiwan", "FXI"),
    ),
    EntityEntry(
        id="taiwan", type="country", name="Taiwan",
        aliases=("taiwan", "taipei", "taiwanese"),
        keywords=(), related=("china", "TSM"),
    ),
    EntityEntry(
        id="north-korea", type="country", name="North Korea",
        aliases=("north korea", "pyongyang", "dprk", "kim jong un"),
        keywords=(), related=("EWY",),
    ),
    EntityEntry(
        id="saudi-arabia", type="country", name="Saudi Arabia",
        aliases=("saudi arabia", "saudi", "riyadh"),
        keywords=("aramco",), related=("USO", "opec"),
    ),
    EntityEntry(
        id="venezuela", type="country", name="Venezuela",
        aliases=("venezuela", "caracas", "maduro"),
        keywords=(), related=("USO",),
    ),
    # Organizations
    EntityEntry(
        id="opec", type="organization", name="OPEC",
        aliases=("opec", "opec+"),
        keywords=("oil output", "production cut"), related=("USO", "saudi-arabia"),
    ),
    EntityEntry(
        id="fed", type="organization", name="Federal Reserve",
        aliases=("federal reserve", "jerome powell", "fomc"),
        keywords=("rate cut", "rate hike", "interest rate"),
        sector="finance", related=("TLT", "SPY"),
    ),
    EntityEntry(
        id="nato", type="organization", name="NATO",
        aliases=("nato",), keywords=("alliance",), related=("russia",),
    ),
    # Commodities and funds
    EntityEntry(
        id="USO", type="commodity", name="Crude Oil",
        aliases=("crude oil", "brent", "wti"),
        keywords=("oil price", "oil prices", "barrel"), sector="energy",
        related=("XLE", "opec"),
    ),
    EntityEntry(
        id="UNG", type="commodity", name="Natural Gas",
        aliases=("natural gas", "lng"), keywords=("gas price",),
        sector="energy",
    ),
    EntityEntry(
        id="GLD", type="commodity", name="Gold",
        aliases=("gold price", "bullion"), keywords=("safe haven",),
        sector="commodities",
    ),
    EntityEntry(
        id="BTC", type="commodity", name="Bitcoin",
        aliases=("bitcoin", "btc"), keywords=("crypto",), sector="crypto",
        related=("COIN", "ETH"),
    ),
    EntityEntry(
        id="ETH", type="commodity", name="Ethereum",
        aliases=("ethereum", "ether"), keywords=(), sector="crypto",
        related=("BTC",),
    ),
    EntityEntry(
        id="SPY", type="index", name="S&P 500",
        aliases=("s&p 500", "s&p"), keywords=("wall street", "stocks"),
        related=("QQQ",),
    ),
    EntityEntry(
        id="QQQ", type="index", name="Nasdaq 100",
        aliases=("nasdaq",), keywords=("tech stocks",), related=("SPY",),
    ),
    EntityEntry(
        id="TLT", type="index", name="US Treasuries",
        aliases=("treasury yields", "treasuries"),
        keywords=("bond market", "yields"), sector="finance",
    ),
    EntityEntry(
        id="XLE", type="index", name="Energy Select Sector",
        aliases=(), keywords=("energy stocks",), sector="energy",
        related=("USO",),
    ),
    EntityEntry(
        id="XLF", type="index", name="Financial Select Sector",
        aliases=(), keywords=("bank stocks",), sector="finance",
    ),
    EntityEntry(
        id="SMH", type="index", name="Semiconductor ETF",
        aliases=(), keywords=("chip stocks", "semiconductor"),
        sector="technology", related=("NVDA", "TSM"),
    ),
    EntityEntry(
        id="FXI", type="index", name="China Large-Cap ETF",
        aliases=("hang seng",), keywords=(), related=("china",),
    ),
    EntityEntry(
        id="EWY", type="index", name="South Korea ETF",
        aliases=("kospi",), keywords=(), related=("north-korea",),
    ),
]
