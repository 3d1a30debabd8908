"""
Traffic Guard Configuration

All thresholds, ASN lists, and detection constants in one place.
Runtime knobs (lookup endpoint, cache sizing, timeouts) can be
overridden through environment variables.
"""

import os
from typing import Dict, FrozenSet, Tuple


# =============================================================================
# Behavior Thresholds
# =============================================================================

BEHAVIOR_THRESHOLDS: Dict[str, Dict[str, int]] = {
    # 40+ movements = GOOD, 20-39 = WARN, below 20 = WARN (never BAD)
    "desktop": {"good": 40, "warn": 20},
    # 7+ touches = GOOD, 3-6 = WARN, below 3 = WARN
    "touch": {"good": 7, "warn": 3},
}

BEHAVIOR_SCORES: Dict[str, int] = {
    "good": 100,
    "low": 60,
    "very_low": 40,
    "suspicious": 0,
    "fallback": 50,
}

# Behavior score at or above which rule-10 traffic is labelled GOOD
GOOD_BEHAVIOR_SCORE = 80


# =============================================================================
# Scoring Weights (sum to 1.0)
# =============================================================================

SCORING_WEIGHTS: Dict[str, float] = {
    "ip_reputation": 0.6,
    "device_fingerprint": 0.3,
    "behavior": 0.1,
}

# Per-facet IP trust component (higher = more trustworthy)
IP_COMPONENT_SCORES: Dict[str, int] = {
    "carrier": 95,
    "vpn": 0,
    "tor": 0,
    "datacenter": 10,
    "proxy": 20,
    "residential": 80,
}

DEVICE_COMPONENT_CLEAN = 80
DEVICE_COMPONENT_TAINTED = 0

HIGH_RISK_BROWSER_PENALTY = 10


# =============================================================================
# Mobile Carrier ASNs
# Carrier IPs bypass behavior analysis entirely
# =============================================================================

MOBILE_CARRIER_ASNS: Dict[str, Tuple[int, ...]] = {
    "india": (
        55836,   # Reliance Jio Infocomm
        45609,   # Reliance Jio (additional range)
        24560,   # Bharti Airtel
        9498,    # Bharti Airtel (Telemedia)
        45514,   # Bharti Airtel LTE
        55410,   # Vodafone Idea
        38266,   # Vodafone India
        9829,    # BSNL
        4755,    # BSNL (additional)
        17747,   # Idea Cellular
        18101,   # Reliance Communications
    ),
    "usa": (
        7018,    # AT&T Services
        20115,   # AT&T Mobility
        22394,   # Verizon Wireless
        6167,    # Verizon Business
        21928,   # T-Mobile USA
        20057,   # Sprint
    ),
    "other": (
        12576,   # EE (UK)
        23455,   # O2 UK
        34984,   # Vodafone UK
        5384,    # Etisalat UAE
        15802,   # Du (UAE)
        24218,   # Singtel Mobile
        10091,   # M1 (Singapore)
    ),
}

ALL_CARRIER_ASNS: FrozenSet[int] = frozenset(
    asn for region in MOBILE_CARRIER_ASNS.values() for asn in region
)


# =============================================================================
# VPN & Datacenter Detection
# =============================================================================

VPN_KEYWORDS: Tuple[str, ...] = (
    "vpn", "proxy", "tor", "tunnel", "anonymou", "private internet",
    "surfshark", "nordvpn", "expressvpn", "cyberghost", "purevpn",
    "ipvanish", "protonvpn", "mullvad", "windscribe", "hotspot shield",
    "hma", "hide.me", "privatevpn", "strongvpn", "torguard",
)

DATACENTER_KEYWORDS: Tuple[str, ...] = (
    # Cloud providers
    "amazon", "aws", "ec2", "cloudfront",
    "google", "gcp", "cloud",
    "microsoft", "azure",
    "digitalocean", "linode", "vultr", "hetzner",
    "ovh", "scaleway", "upcloud",
    # Hosting providers
    "hosting", "server", "datacenter", "data center",
    "colocation", "colo", "dedicated",
    "cloudflare", "fastly", "akamai", "cdn",
    "rackspace", "godaddy", "bluehost", "hostinger",
    # VPS providers
    "vps", "virtual private", "virtual server",
)

TOR_KEYWORDS: Tuple[str, ...] = ("tor exit", "tor project")

DATACENTER_ASNS: FrozenSet[int] = frozenset({
    16509, 14618, 8987,      # AWS
    15169, 396982,           # Google Cloud
    8075, 8068, 8069,        # Microsoft Azure
    14061,                   # DigitalOcean
    63949,                   # Linode
    20473,                   # Vultr
    16276,                   # OVH
    24940,                   # Hetzner
    13335,                   # Cloudflare
})


# =============================================================================
# Browser Risk
# =============================================================================

HIGH_RISK_BROWSERS: Tuple[str, ...] = (
    "facebook",
    "facebook messenger",
    "opera mini",
)


# =============================================================================
# Caching & Timeouts
# =============================================================================

IP_CACHE_MAX_SIZE = int(os.getenv("IP_CACHE_MAX_SIZE", 1000))
IP_CACHE_TTL = float(os.getenv("IP_CACHE_TTL", 3600))           # seconds
CACHE_CLEANUP_INTERVAL = float(os.getenv("CACHE_CLEANUP_INTERVAL", 300))

IP_LOOKUP_URL = os.getenv("IP_LOOKUP_URL", "https://ipapi.co/{ip}/json/")
IP_LOOKUP_TIMEOUT = float(os.getenv("IP_LOOKUP_TIMEOUT", 3.0))  # seconds

BATCH_LOOKUP_SIZE = 10
BATCH_LOOKUP_DELAY = 0.1  # seconds between batches


# =============================================================================
# Environment
# =============================================================================

ENVIRONMENT = os.getenv("TRAFFIC_GUARD_ENV", "production")
