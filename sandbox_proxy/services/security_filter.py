"""
Security Filter
Policy driven removal of ad and tracker markup, applied after rewriting
"""

import re
from typing import Dict, List, Tuple

from loguru import logger

from sandbox_proxy.models import SecurityPolicy


_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)


class SecurityFilter:
    """Strips ad and tracker markup according to a SecurityPolicy.

    Matching is pattern based and best effort. Patterns are kept narrow so
    that a missed tracker is more likely than broken page markup.
    """

    def __init__(self):
        self.ad_patterns: Dict[str, List[str]] = {
            'adsense': [
                r'googlesyndication\.com',
                r'adsbygoogle',
                r'google_ad_client',
            ],
            'google_tag': [
                r'googletag',
                r'securepubads',
            ],
            'doubleclick': [
                r'doubleclick\.net',
                r'doubleclick',
            ],
            'amazon': [
                r'amazon-adsystem\.com',
            ],
        }
        self.tracker_patterns: Dict[str, List[str]] = {
            'ga4': [
                r'gtag\s*\(',
                r'gtm\.js',
                r'google-analytics\.com',
                r'googletagmanager\.com',
            ],
            'facebook': [
                r'fbq\s*\(',
                r'facebook-pixel',
                r'connect\.facebook\.net',
            ],
            'twitter': [
                r'static\.ads-twitter\.com',
                r'platform\.twitter\.com',
                r'twq\s*\(',
            ],
            'hotjar': [
                r'hotjar\.com',
                r'_hjSettings',
            ],
            'mixpanel': [
                r'mixpanel\.com',
                r'mixpanel\.init',
                r'mixpanel\.track',
            ],
        }
        self._ad_marker = self._compile(self.ad_patterns)
        self._tracker_marker = self._compile(self.tracker_patterns)
        self._ad_markup = [
            re.compile(r"<!--\s*(?:Google|Ads?\b|AdSense)(?:(?!-->).)*-->", re.IGNORECASE | re.DOTALL),
            re.compile(
                r"<ins\b[^>]*class=[\"'][^\"']*adsbygoogle[^\"']*[\"'][^>]*>.*?</ins\s*>",
                re.IGNORECASE | re.DOTALL,
            ),
        ]

    @staticmethod
    def _compile(groups: Dict[str, List[str]]) -> re.Pattern:
        patterns = [pattern for group in groups.values() for pattern in group]
        return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)

    def _strip_scripts(self, html: str, marker: re.Pattern) -> Tuple[str, int]:
        removed = 0

        def replace(match: re.Match) -> str:
            nonlocal removed
            if marker.search(match.group(0)):
                removed += 1
                return ""
            return match.group(0)

        return _SCRIPT_BLOCK.sub(replace, html), removed

    def apply(self, html: str, policy: SecurityPolicy) -> str:
        """Filter ``html`` for ``policy``; the input comes back if filtering faults"""

        try:
            filtered = html
            ads = trackers = 0

            if policy.ad_blocker:
                for pattern in self._ad_markup:
                    filtered = pattern.sub("", filtered)
                filtered, ads = self._strip_scripts(filtered, self._ad_marker)

            if policy.tracker_protection:
                filtered, trackers = self._strip_scripts(filtered, self._tracker_marker)

            # malware_protection is accepted but not enforced yet

            if ads or trackers:
                logger.debug(f"Security filter removed {ads} ad and {trackers} tracker scripts")
            return filtered

        except re.error as e:
            logger.warning(f"Security filter failed, serving unfiltered content: {e}")
            return html
