"""
Issue Text Catalog

Turns IssueFindings into displayable Issues. Templates are plain
str.format strings keyed by rule id, so the wording (or the language)
can be swapped without touching the classifier.

Overrides can be loaded from YAML:

    rules:
      battery.health:
        title: "Low Battery Health"
        description: "Current battery health is {health}%."
        suggestion: "Consider a battery replacement."
    labels:
      left: "left channel"
    parts:
      storage: "storage drive (SSD)"
    indicators:
      third_party_storage: "Non-original storage device"
"""

import copy
import logging
import string
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from .models import Issue, IssueFinding

logger = logging.getLogger(__name__)


DEFAULT_RULE_TEXTS: Dict[str, Dict[str, str]] = {
    'battery.health': {
        'title': "Low Battery Health",
        'description': "Current battery health is {health}%, below the 80% good standard.",
        'suggestion': "Battery life may be shorter than new. Consider battery replacement or price negotiation.",
    },
    'battery.cycle_count': {
        'title': "High Battery Cycle Count",
        'description': ("Current cycle count is {cycle_count}. macOS batteries are designed for "
                        "1000 cycles, Windows laptops typically 300-500."),
        'suggestion': "Battery has been heavily used. Test actual usage time before purchase.",
    },
    'storage.smart': {
        'title': "Storage Health Issue",
        'description': 'Storage SMART status is "{smart_status}", indicating potential failure risk.',
        'suggestion': "Storage may fail soon. Strongly recommend not purchasing or requesting replacement.",
    },
    'screen.dead_pixel': {
        'title': "Dead Pixels Detected",
        'description': "Bright or dark spots were found during the dead pixel test.",
        'suggestion': ("Dead pixels cannot be fixed, only by screen replacement. Consider the impact "
                       "on daily use and negotiate accordingly."),
    },
    'keyboard.incomplete': {
        'title': "Keyboard Not Fully Tested",
        'description': ("Only {tested_count} of {total_keys} keys were registered. "
                        "There may be untested problematic keys."),
        'suggestion': "Perform a complete keyboard test to ensure all keys work properly.",
    },
    'trackpad.malfunction': {
        'title': "Trackpad Issues",
        'description': "The following functions failed: {functions}",
        'suggestion': "Trackpad issues may need repair. Negotiate price or request the seller to fix.",
    },
    'camera.not_working': {
        'title': "Camera Not Working",
        'description': "Camera test failed. Unable to capture video.",
        'suggestion': "Camera needs repair. If video calls are needed, negotiate or reconsider purchase.",
    },
    'microphone.not_working': {
        'title': "Microphone Not Working",
        'description': "Microphone test failed. Unable to record audio.",
        'suggestion': "Microphone damage affects calls and recording. Recommend repair before purchase.",
    },
    'speaker.channel_failure': {
        'title': "Speaker Issues",
        'description': "The following channels failed: {channels}",
        'suggestion': "Speaker issues may require replacement, affecting audio playback.",
    },
    'refurbishment.replaced_part': {
        'title': "Replaced Part Detected: {part}",
        'description': "The {part} of this device may have been replaced with non-original parts.",
        'suggestion': ("Non-original parts may affect performance and compatibility. "
                       "Verify quality and consider negotiating."),
    },
    'refurbishment.certified_program': {
        'title': "Certified Refurbished",
        'description': "This device is {program}.",
        'suggestion': ("Certified refurbished devices usually have quality guarantees, "
                       "but should be priced lower than new."),
    },
    'refurbishment.indicator': {
        'title': "{indicator_title}",
        'description': "{indicator_description}",
        'suggestion': ("Please carefully check the related parts and consider if it affects "
                       "your purchase decision."),
    },
}

DEFAULT_LABELS: Dict[str, str] = {
    'click': "click",
    'drag': "drag",
    'gesture': "gesture",
    'left': "left channel",
    'right': "right channel",
}

DEFAULT_PARTS: Dict[str, str] = {
    'storage': "storage drive (SSD)",
    'battery': "battery",
    'display': "display",
}

DEFAULT_INDICATORS: Dict[str, str] = {
    'third_party_storage': "Non-original storage device",
    'third_party_display': "Non-original display",
    'enterprise_managed': "Device was previously enterprise-managed",
    'firmware_refurb': "Refurbishment marker found in firmware",
    'serial_refurb': "Serial number marks a certified refurbished unit",
    'low_battery_cycles': "Very low battery cycle count, battery may be newly replaced",
    'high_battery_health': "Unusually high battery health, battery may be newly replaced",
}


class _KeepMissing(dict):
    """format_map helper: leave unknown placeholders as-is."""

    def __missing__(self, key):
        return "{" + key + "}"


def template_error(template: Any) -> Optional[str]:
    """Why `template` cannot be used with str.format, None if it can."""
    if not isinstance(template, str):
        return f"expected a string, got {type(template).__name__}"
    try:
        for _, field_name, _, conversion in string.Formatter().parse(template):
            if field_name is None:
                continue
            key = field_name.partition('.')[0].partition('[')[0]
            if not key or key.isdigit():
                return f"positional placeholder {{{field_name}}}"
            if conversion not in (None, 'r', 's', 'a'):
                return f"unknown conversion !{conversion}"
    except ValueError as e:
        return str(e)
    return None


def _valid_overrides(rules: Optional[Dict[str, Dict[str, str]]]) -> Dict[str, Dict[str, str]]:
    """Rule texts with unusable templates dropped (and logged)."""
    valid: Dict[str, Dict[str, str]] = {}
    for rule_id, texts in (rules or {}).items():
        if not isinstance(texts, dict):
            logger.error(f"Ignoring issue texts for {rule_id}: expected a mapping")
            continue
        kept = {}
        for part, template in texts.items():
            error = template_error(template)
            if error:
                logger.error(f"Ignoring {rule_id}.{part} text: {error}")
            else:
                kept[part] = template
        valid[rule_id] = kept
    return valid


class IssueTextCatalog:
    """Renders findings into Issues using per-rule templates."""

    def __init__(
        self,
        rules: Optional[Dict[str, Dict[str, str]]] = None,
        labels: Optional[Dict[str, str]] = None,
        parts: Optional[Dict[str, str]] = None,
        indicators: Optional[Dict[str, str]] = None,
    ):
        self.rules = copy.deepcopy(DEFAULT_RULE_TEXTS)
        for rule_id, texts in _valid_overrides(rules).items():
            self.rules.setdefault(rule_id, {}).update(texts)
        self.labels = {**DEFAULT_LABELS, **(labels or {})}
        self.parts = {**DEFAULT_PARTS, **(parts or {})}
        self.indicators = {**DEFAULT_INDICATORS, **(indicators or {})}

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'IssueTextCatalog':
        """
        Build a catalog with overrides from a YAML file.

        Raises:
            OSError: file cannot be read
            ValueError: file is not valid YAML or not a mapping
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid text catalog {path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Text catalog {path} must be a mapping")

        return cls(
            rules=data.get('rules'),
            labels=data.get('labels'),
            parts=data.get('parts'),
            indicators=data.get('indicators'),
        )

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> 'IssueTextCatalog':
        """Catalog from `path` if given and readable, defaults otherwise."""
        if not path:
            return cls()
        try:
            catalog = cls.from_yaml(path)
            logger.info(f"Loaded issue texts from {path}")
            return catalog
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load issue texts, using defaults: {e}")
            return cls()

    # === Rendering ===

    def translate_part(self, part: str) -> str:
        return self.parts.get(part, part)

    def translate_indicator(self, description: str) -> str:
        """Indicator descriptions are either a key or 'key:detail'."""
        if ':' in description:
            key, _, detail = description.partition(':')
            if key in self.indicators:
                return f"{self.indicators[key]}: {detail.strip()}"
        return self.indicators.get(description, description)

    def _params(self, finding: IssueFinding) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for key, value in finding.params.items():
            if isinstance(value, (list, tuple)):
                params[key] = ", ".join(self.labels.get(v, v) for v in value)
            else:
                params[key] = value

        if 'part' in params:
            params['part'] = self.translate_part(params['part'])
        if finding.rule_id == 'refurbishment.indicator':
            text = self.translate_indicator(params.get('description') or params.get('name', ''))
            params['indicator_description'] = text
            params['indicator_title'] = text.split(':')[0] or params.get('name', '')
        return params

    def _format(self, rule_id: str, part: str, template: str, params: Dict[str, Any]) -> str:
        """Fill one template, falling back to the built-in text if it will not format."""
        try:
            return template.format_map(params)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Cannot render {rule_id}.{part} text, using default: {e}")
        default = DEFAULT_RULE_TEXTS.get(rule_id, {}).get(part)
        if default is None or default == template:
            return template
        return self._format(rule_id, part, default, params)

    def render(self, finding: IssueFinding) -> Issue:
        texts = self.rules.get(finding.rule_id)
        if texts is None:
            logger.warning(f"No text for rule {finding.rule_id}")
            texts = {'title': finding.rule_id, 'description': '', 'suggestion': ''}

        params = _KeepMissing(self._params(finding))
        rendered = {
            part: self._format(finding.rule_id, part, texts.get(part, ''), params)
            for part in ('title', 'description', 'suggestion')
        }
        return Issue(
            category=finding.category,
            severity=finding.severity,
            evidence=finding.evidence,
            rule_id=finding.rule_id,
            **rendered,
        )

    def render_all(self, findings: Iterable[IssueFinding]) -> List[Issue]:
        return [self.render(f) for f in findings]
