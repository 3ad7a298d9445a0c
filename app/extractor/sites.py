"""Per-site profiles: anchors, bundled caches, extraction scripts and URLs."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple, Type

from . import config
from .anchor_probe import AnchorProbeSpec, DerivationStrategy
from .errors import ConfigError
from .fingerprint import Fingerprint, ForkedFingerprint
from .utils import percent_encode


class Category(Enum):
    """Site or integration a cache file, fingerprint or event belongs to."""

    GTRANS = ("gtrans", "Google Translate")
    CAMD = ("camd", "Cambridge Dictionary")
    TWTL = ("twtl", "Twitter Timeline")

    def __init__(self, cache_id: str, label: str) -> None:
        self.cache_id = cache_id
        self.label = label

    @classmethod
    def from_cache_id(cls, cache_id: str) -> "Category":
        for member in cls:
            if member.cache_id == cache_id:
                return member
        raise ValueError(f"unknown cache id: {cache_id!r}")


# Both dictionary sites ship the same two known-good containers, newest first.
BUNDLED_DEFAULTS = (
    "[4,0,1,0,1,0,1,1,2,1,1,9,0,2,0,0,1]\n"
    "[4,0,1,0,1,0,1,1,2,1,1,9,0,3,0,0,1]\n"
    "-"
)

# Async (callback last). Polls until the container at ``arguments[0]`` has
# rendered, then sends back the element children of the entry block, each
# prefixed with a separator the dictionary parser splits on.
CAMD_EXTRACTION_SCRIPT = r"""
var sendBack = arguments[arguments.length - 1];
var path = arguments[0];
clearInterval(window['extractor-camd']);
window['extractor-camd'] = setInterval(function () {
    var node = document.body;
    for (var j = 0; j < path.length; j++) {
        if (node === undefined) { return; }
        node = node.childNodes[path[j]];
    }
    if (node === undefined || node.childNodes.length === 0) { return; }
    var count = node.childNodes.length;
    for (var i = 0; i < count; i++) {
        var cur = node.childNodes[i];
        if (cur.innerText !== undefined && cur.innerText.includes('\nAdd to word list \n')) {
            node = cur;
            break;
        }
    }
    var out = '';
    for (var k = 0; k < node.childNodes.length; k++) {
        var child = node.childNodes[k];
        if (child !== undefined && child.nodeType === 1) {
            out += '______' + child.innerText;
        }
    }
    clearInterval(window['extractor-camd']);
    sendBack(out);
}, 500);
"""

# Async (callback last). Sends back the rendered text of the node at
# ``arguments[0]`` once it exists.
GTRANS_EXTRACTION_SCRIPT = r"""
var sendBack = arguments[arguments.length - 1];
var path = arguments[0];
clearInterval(window['extractor-gtrans']);
window['extractor-gtrans'] = setInterval(function () {
    if (path.length === 0) { return; }
    var node = document.body;
    for (var j = 0; j < path.length; j++) {
        if (node === undefined) { return; }
        node = node.childNodes[path[j]];
    }
    if (node === undefined) { return; }
    clearInterval(window['extractor-gtrans']);
    sendBack(node.innerText);
}, 500);
"""

# Pairs of [upper, lower] paths; each newline marks a past layout change.
TWTL_BUNDLED_DEFAULTS = (
    "[[2,0,0,2,3,0,0,0,0,0,2,0,0,2,1,0,0,0],[0,0,0,0,0,1,1,1]]\n"
    "[[2,0,0,1,3,0,0,0,0,0,2,0,0,2,1,0,0,0],[0,0,0,0,0,1,1,1]]\n"
    "[[2,0,0,1,3,0,0,0,0,0,2,0,0,2,1,0],[0,0,0,0,0,1,1,1]]\n"
    "-"
)

# Pinned tweets on the probe account; their texts are these two markers.
TWTL_PROBE_ACCOUNT = "mafa_rs"
TWTL_ANCHOR_NEWER = "__________1__________"
TWTL_ANCHOR_OLDER = "__________0__________"
TWTL_LOGIN_URL = "https://twitter.com/i/flow/login"

# Async (callback last). ``arguments[0]`` is ``{upper_idx, lower_idx}``. Waits
# for the item list under ``upper_idx`` to render, remembers its parent for the
# scroll script, then sends back one string per loaded item:
# ``twtl_v1\n<status id or UNKNOWNID>\n<item text>``.
TWTL_EXTRACTION_SCRIPT = r"""
var sendBack = arguments[arguments.length - 1];
window['extractor-twtl-path'] = arguments[0];
function loadedCount(parent) {
    var count = 0;
    for (var i = 0; i < parent.childNodes.length; i++) {
        var child = parent.childNodes[i];
        if (child === undefined || child.innerText === undefined || child.innerText === null) {
            return count;
        }
        count += 1;
    }
    return count;
}
clearInterval(window['extractor-twtl']);
window['extractor-twtl'] = setInterval(function () {
    var path = window['extractor-twtl-path'];
    var parent = document.body;
    for (var j = 0; j < path.upper_idx.length; j++) {
        var idx = path.upper_idx[j];
        if (parent.childNodes.length > idx) {
            parent = parent.childNodes[idx];
        }
    }
    window['extractor-twtl-parent'] = parent;
    var loaded = loadedCount(parent);
    if (loaded === 0) { return; }
    var items = [];
    for (var k = 0; k < loaded; k++) {
        var item = parent.childNodes[k];
        var status = item.innerHTML.match('/status/([0-9]+)/');
        var out = 'twtl_v1\n';
        out += (status && status.length === 2 ? status[1] : 'UNKNOWNID') + '\n';
        out += item.innerText;
        items.push(out);
    }
    clearInterval(window['extractor-twtl']);
    sendBack(items);
}, 1000);
"""

# Sync. Scrolls the ``arguments[0]``-th loaded item into view so the page
# loads the next batch.
TWTL_SCROLL_SCRIPT = r"""
var parent = window['extractor-twtl-parent'];
var nth = parent === undefined ? undefined : parent.childNodes[arguments[0] - 1];
if (nth !== undefined) {
    nth.scrollIntoView();
}
"""


def camd_url(words: str) -> str:
    return f"https://dictionary.cambridge.org/us/dictionary/english/{words}"


def gtrans_url(text: str, source_lang: str = "auto", target_lang: str = "en") -> str:
    return (
        f"https://translate.google.com/?sl={source_lang}&tl={target_lang}"
        f"&text={percent_encode(text)}&op=translate"
    )


def normalized_username(username: str) -> str:
    """Strip surrounding blanks and one leading ``@``."""

    name = username.strip()
    if name.startswith("@"):
        name = name[1:]
    if not name:
        raise ConfigError("username must not be empty")
    return name


def twtl_url(username: str) -> str:
    return f"https://twitter.com/{normalized_username(username)}"


@dataclass(frozen=True)
class SiteProfile:
    category: Category
    bundled_defaults: str
    probes: Tuple[AnchorProbeSpec, AnchorProbeSpec]
    strategy: DerivationStrategy
    target_url: Callable[[str], str]
    extraction_script: str
    backoff_ms: int
    retry_marker: Optional[str] = None
    entry_type: Type = Fingerprint
    # Paged profiles scroll for more items instead of reading one node.
    scroll_script: Optional[str] = None
    login_url: Optional[str] = None

    @property
    def cache_id(self) -> str:
        return self.category.cache_id

    @property
    def remote_url(self) -> str:
        return config.remote_cache_url(self.cache_id)

    @property
    def is_paged(self) -> bool:
        return self.scroll_script is not None


CAMD = SiteProfile(
    category=Category.CAMD,
    bundled_defaults=BUNDLED_DEFAULTS,
    probes=(
        AnchorProbeSpec(camd_url("hello"), "used when meeting or greeting someone:"),
        AnchorProbeSpec(
            camd_url("world"),
            "the earth and all the people, places, and things on it:",
        ),
    ),
    strategy=DerivationStrategy.COMMON_PREFIX,
    target_url=camd_url,
    extraction_script=CAMD_EXTRACTION_SCRIPT,
    backoff_ms=10,
)

GTRANS = SiteProfile(
    category=Category.GTRANS,
    bundled_defaults=BUNDLED_DEFAULTS,
    probes=(
        AnchorProbeSpec(gtrans_url("OMG", "en", "zh-TW"), "我的天啊"),
        AnchorProbeSpec(gtrans_url("ASAP", "en", "zh-TW"), "盡快"),
    ),
    strategy=DerivationStrategy.EXACT,
    target_url=gtrans_url,
    extraction_script=GTRANS_EXTRACTION_SCRIPT,
    backoff_ms=100,
    retry_marker="Try again",
)

TWTL = SiteProfile(
    category=Category.TWTL,
    bundled_defaults=TWTL_BUNDLED_DEFAULTS,
    probes=(
        AnchorProbeSpec(twtl_url(TWTL_PROBE_ACCOUNT), TWTL_ANCHOR_NEWER),
        AnchorProbeSpec(twtl_url(TWTL_PROBE_ACCOUNT), TWTL_ANCHOR_OLDER),
    ),
    strategy=DerivationStrategy.FORK,
    target_url=twtl_url,
    extraction_script=TWTL_EXTRACTION_SCRIPT,
    backoff_ms=1000,
    entry_type=ForkedFingerprint,
    scroll_script=TWTL_SCROLL_SCRIPT,
    login_url=TWTL_LOGIN_URL,
)

PROFILES = {profile.category: profile for profile in (CAMD, GTRANS, TWTL)}


def profile_for(category: Category) -> SiteProfile:
    return PROFILES[category]


__all__ = [
    "Category",
    "SiteProfile",
    "BUNDLED_DEFAULTS",
    "CAMD",
    "GTRANS",
    "TWTL",
    "TWTL_BUNDLED_DEFAULTS",
    "PROFILES",
    "profile_for",
    "camd_url",
    "gtrans_url",
    "twtl_url",
    "normalized_username",
]
