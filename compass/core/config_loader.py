"""
Config Loader - typed, validated view of the career flow document

Responsibilities:
- Read the configuration document (JSON) from disk
- Parse it into frozen contracts (ConfigDocument and friends)
- Apply documented field defaults when the document omits them
- Reject documents with dangling references or missing sections

Design principles:
- Fail fast: every integrity problem is collected, then raised once
- Parse once: downstream modules never touch the raw dict again
- No partial configs: either a complete ConfigDocument or an exception

Validation covers:
- Required top-level sections
- Path id references (routing rules, option scores, question sets,
  experiment library, suggestions, focus templates, translation rules)
- Question/option id uniqueness
- Closed signal vocabulary on option deltas
- Focus template slots against each path's closed slot set
- Translation conditions against the version fields each path declares
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from compass.contracts import (
    CORE_SIGNALS,
    SCALES,
    SIGNALS,
    ConfidenceBand,
    ConfigDocument,
    ExperimentDef,
    FocusTemplate,
    OptionDef,
    PathDef,
    ProfileField,
    QuestionDef,
    QuestionType,
    RoutingRule,
    SelectionRules,
    SummaryLabels,
    TranslationRule,
    WhyEvidenceConfig,
)
from compass.utils.template_renderer import find_slots

logger = logging.getLogger(__name__)


REQUIRED_SECTIONS = (
    "paths",
    "diagnostic",
    "refinement",
    "flow",
    "summaryLogic",
    "focusStatement",
    "experiments",
    "templates",
)

DEFAULT_MULTI_MAX_SELECT = 2
DEFAULT_PICK_COUNT = 2
DEFAULT_MAX_PICK_COUNT = 3
DEFAULT_WHY_MAX_BULLETS = 3
DEFAULT_EVIDENCE_MAX_BULLETS = 4

VERSION_PREFIX = "versionOfPath."

# Standard paths: (descriptor slot, discriminant field, default descriptor)
STANDARD_FOCUS_SLOTS = {
    "levelUp": ("levelUpDescriptor", "levelUpType", "greater responsibility and impact"),
    "thrive": ("thriveDescriptor", "thriveFocus", "my effectiveness and impact"),
    "moveAcross": ("acrossDescriptor", "acrossPurpose", "broader perspective"),
    "expandView": ("exploreDescriptor", "exploreMode", "a short-term experience"),
    "reset": ("resetDescriptor", "resetDriver", "sustainability and clarity"),
}
GENERIC_FOCUS_SLOT = ("descriptor", None, "this direction")

EMPLOYEE_LABEL_DEFAULTS = {
    "title": "My Career Compass Summary",
    "profile": "About me",
    "path": "Direction I'm exploring",
    "why": "Why this direction",
    "focus": "My focus statement",
    "experiments": "Experiments I'll run",
    "evidence": "What I said that shaped this",
    "openQuestion": "My question for my People Leader",
}

LEADER_LABEL_DEFAULTS = {
    "title": "People Leader Coaching Brief",
    "direction": "Direction",
    "translation": "What this means",
    "focus": "Their focus statement",
    "coachingFocus": "Where to focus your coaching",
    "watchOuts": "Watch-outs",
    "experiments": "Experiments they've chosen",
    "ask": "What they're asking of you",
    "pressureTest": "Pressure-test question",
    "success": "What success looks like",
    "checkpoint": "Checkpoint",
    "checkpointTemplate": "Check in together in {days} days.",
    "openQuestion": "Their open question for you",
}


class ConfigIntegrityError(ValueError):
    """Configuration document is incomplete or internally inconsistent."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Configuration validation failed:\n  - " + "\n  - ".join(self.errors))


# =============================================================================
# Public API
# =============================================================================

def load_config(config_path: str) -> ConfigDocument:
    """
    Load and validate a configuration file.

    Args:
        config_path: Path to the JSON configuration document

    Returns:
        ConfigDocument

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigIntegrityError: If the document fails validation
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigIntegrityError([f"Invalid JSON in {config_path}: {e}"]) from e

    config = parse_config(data)
    logger.info(f"Configuration loaded from {path} (version {config.version})")
    return config


def parse_config(data: Dict[str, Any]) -> ConfigDocument:
    """
    Parse a raw configuration dict into a ConfigDocument.

    Raises:
        ConfigIntegrityError: Listing every problem found
    """
    if not isinstance(data, dict):
        raise ConfigIntegrityError(["Configuration document must be a JSON object"])

    parser = _ConfigParser(data)
    config = parser.parse()

    if parser.errors:
        raise ConfigIntegrityError(parser.errors)

    logger.info(
        f"Configuration validated: {len(config.paths)} paths, "
        f"{len(config.diagnostic_questions)} diagnostic questions, "
        f"{len(config.routing_rules)} routing rules"
    )
    return config


# =============================================================================
# Parsing
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _descriptor_field_from_key(key: str) -> str:
    # byLevelUpType -> levelUpType
    name = key[2:]
    return name[:1].lower() + name[1:]


class _ConfigParser:
    """Single-use parser that accumulates errors while building contracts."""

    def __init__(self, data: Dict[str, Any]):
        self.data = data
        self.errors: List[str] = []
        self.path_ids: Tuple[str, ...] = ()
        # path id -> dotted version fields declared by refinement option 'sets'
        self.declared_fields: Dict[str, Set[str]] = {}

    def parse(self) -> Optional[ConfigDocument]:
        missing = [s for s in REQUIRED_SECTIONS if s not in self.data]
        for section in missing:
            self.errors.append(f"Missing required section '{section}'")
        if missing:
            return None

        paths = self._parse_paths(self.data["paths"])
        self.path_ids = tuple(p.id for p in paths)

        diagnostic = _as_dict(self.data["diagnostic"])
        diagnostic_questions = self._parse_questions(
            diagnostic.get("questions"), "diagnostic", allow_sets=False
        )
        bands = self._parse_bands(_as_dict(diagnostic.get("confidence")).get("bands"))

        refinement_sets = self._parse_refinement(_as_dict(self.data["refinement"]))

        templates = _as_dict(self.data["templates"])
        ui_strings = _as_dict(templates.get("uiStrings"))
        confidence_labels = tuple(
            (str(k), str(v)) for k, v in _as_dict(ui_strings.get("confidenceLabels")).items()
        )

        routing_rules = self._parse_routing_rules(
            _as_list(_as_dict(self.data["flow"]).get("routingRules")),
            {b.id for b in bands},
        )

        summary_logic = _as_dict(self.data["summaryLogic"])
        why_evidence = self._parse_why_evidence(_as_dict(summary_logic.get("whyEvidence")))
        evidence_max = _as_dict(summary_logic.get("evidence")).get(
            "maxBullets", DEFAULT_EVIDENCE_MAX_BULLETS
        )
        if not isinstance(evidence_max, int) or evidence_max < 0:
            self.errors.append("summaryLogic.evidence.maxBullets must be a non-negative integer")
            evidence_max = DEFAULT_EVIDENCE_MAX_BULLETS
        translation_rules = self._parse_translation_rules(
            _as_list(summary_logic.get("intentTranslationRules"))
        )
        fallback = summary_logic.get("fallbackIntentTranslation")
        if fallback is None:
            self.errors.append("Missing 'summaryLogic.fallbackIntentTranslation'")
            fallback = {}
        fallback_translation = tuple(_as_dict(fallback).items())

        focus_templates = self._parse_focus(_as_dict(self.data["focusStatement"]))

        experiments_section = _as_dict(self.data["experiments"])
        experiments = self._parse_experiments(_as_list(experiments_section.get("library")))
        selection_rules = self._parse_selection_rules(
            _as_dict(experiments_section.get("selectionRules")),
            {e.id for e in experiments},
        )

        summary_labels = self._parse_summary_labels(_as_dict(templates.get("summary")))

        profile = _as_dict(self.data.get("profile"))
        profile_fields = self._parse_profile_fields(_as_list(profile.get("fields")))

        plan = _as_dict(self.data.get("plan"))
        extra = {}
        if plan.get("defaultOpenQuestion"):
            extra["default_open_question"] = str(plan["defaultOpenQuestion"])

        return ConfigDocument(
            version=str(self.data.get("version", "unknown")),
            paths=paths,
            diagnostic_questions=diagnostic_questions,
            refinement_sets=refinement_sets,
            confidence_bands=bands,
            confidence_labels=confidence_labels,
            routing_rules=routing_rules,
            why_evidence=why_evidence,
            evidence_max_bullets=evidence_max,
            translation_rules=translation_rules,
            fallback_translation=fallback_translation,
            focus_templates=focus_templates,
            experiments=experiments,
            selection_rules=selection_rules,
            summary_labels=summary_labels,
            ui_strings=ui_strings,
            profile_enabled=bool(profile.get("enabled", False)),
            profile_fields=profile_fields,
            **extra,
        )

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def _parse_paths(self, raw: Any) -> Tuple[PathDef, ...]:
        items = _as_list(raw)
        if not items:
            self.errors.append("'paths' must be a non-empty list")
            return ()

        paths = []
        seen = set()
        for i, item in enumerate(items):
            item = _as_dict(item)
            path_id = item.get("id")
            if not path_id:
                self.errors.append(f"Path at index {i} missing 'id'")
                continue
            if path_id in seen:
                self.errors.append(f"Duplicate path id '{path_id}'")
                continue
            seen.add(path_id)
            paths.append(PathDef(
                id=path_id,
                label=str(item.get("label", path_id)),
                short=str(item.get("short", "")),
            ))
        return tuple(paths)

    def _check_path(self, path_id: Any, where: str) -> bool:
        if path_id not in self.path_ids:
            self.errors.append(f"{where} references unknown path '{path_id}'")
            return False
        return True

    # -------------------------------------------------------------------------
    # Questions
    # -------------------------------------------------------------------------

    def _parse_questions(self, raw: Any, where: str, allow_sets: bool,
                         path_id: Optional[str] = None) -> Tuple[QuestionDef, ...]:
        items = _as_list(raw)
        if raw is None:
            self.errors.append(f"Missing question list for {where}")

        questions = []
        seen = set()
        for i, item in enumerate(items):
            item = _as_dict(item)
            q_id = item.get("id")
            if not q_id:
                self.errors.append(f"Question at index {i} in {where} missing 'id'")
                continue
            if q_id in seen:
                self.errors.append(f"Duplicate question id '{q_id}' in {where}")
                continue
            seen.add(q_id)

            raw_type = item.get("type", QuestionType.SINGLE.value)
            try:
                q_type = QuestionType(raw_type)
            except ValueError:
                self.errors.append(f"Question '{q_id}' in {where} has unknown type '{raw_type}'")
                q_type = QuestionType.SINGLE

            if q_type == QuestionType.MULTI:
                max_select = item.get("maxSelect", DEFAULT_MULTI_MAX_SELECT)
                if not isinstance(max_select, int) or max_select < 1:
                    self.errors.append(f"Question '{q_id}' in {where} has invalid maxSelect")
                    max_select = DEFAULT_MULTI_MAX_SELECT
            else:
                max_select = 1

            options = self._parse_options(item.get("options"), f"question '{q_id}' in {where}",
                                          allow_sets, path_id)
            questions.append(QuestionDef(
                id=q_id,
                prompt=str(item.get("prompt", "")),
                type=q_type,
                options=options,
                max_select=max_select,
                help_text=item.get("help"),
            ))
        return tuple(questions)

    def _parse_options(self, raw: Any, where: str, allow_sets: bool,
                       path_id: Optional[str]) -> Tuple[OptionDef, ...]:
        items = _as_list(raw)
        if not items:
            self.errors.append(f"{where} has no options")
            return ()

        parsed = []
        seen = set()
        for i, item in enumerate(items):
            item = _as_dict(item)
            o_id = item.get("id")
            if not o_id:
                self.errors.append(f"Option at index {i} in {where} missing 'id'")
                continue
            if o_id in seen:
                self.errors.append(f"Duplicate option id '{o_id}' in {where}")
                continue
            seen.add(o_id)

            signals = []
            scales = []
            for name, value in _as_dict(item.get("signals")).items():
                if name in SIGNALS:
                    if not _is_number(value):
                        self.errors.append(f"Option '{o_id}' in {where}: signal '{name}' must be numeric")
                        continue
                    signals.append((name, value))
                elif name in SCALES:
                    scales.append((name, value))
                else:
                    self.errors.append(f"Option '{o_id}' in {where}: unknown signal '{name}'")

            path_scores = []
            for score_path, value in _as_dict(item.get("pathScore")).items():
                if not self._check_path(score_path, f"Option '{o_id}' in {where}"):
                    continue
                if not _is_number(value):
                    self.errors.append(f"Option '{o_id}' in {where}: score for '{score_path}' must be numeric")
                    continue
                path_scores.append((score_path, value))

            sets = tuple(_as_dict(item.get("sets")).items())
            if sets and not allow_sets:
                logger.warning(f"Option '{o_id}' in {where} has 'sets' outside refinement; ignored")
                sets = ()
            if path_id is not None:
                self.declared_fields.setdefault(path_id, set()).update(k for k, _ in sets)

            order = item.get("order", i)
            if not _is_number(order):
                order = i

            parsed.append((order, i, OptionDef(
                id=o_id,
                label=str(item.get("label", o_id)),
                signals=tuple(signals),
                scales=tuple(scales),
                path_scores=tuple(path_scores),
                sets=sets,
                order=order,
            )))

        parsed.sort(key=lambda t: (t[0], t[1]))
        return tuple(option for _, _, option in parsed)

    def _parse_refinement(self, section: Dict[str, Any]) -> Tuple[Tuple[str, Tuple[QuestionDef, ...]], ...]:
        question_sets = section.get("questionSets")
        if not isinstance(question_sets, dict):
            self.errors.append("Missing 'refinement.questionSets'")
            return ()

        result = []
        for path_id, questions in question_sets.items():
            if not self._check_path(path_id, "refinement.questionSets"):
                continue
            self.declared_fields.setdefault(path_id, set())
            parsed = self._parse_questions(questions, f"refinement set '{path_id}'",
                                           allow_sets=True, path_id=path_id)
            result.append((path_id, parsed))
        return tuple(result)

    # -------------------------------------------------------------------------
    # Confidence and routing
    # -------------------------------------------------------------------------

    def _parse_bands(self, raw: Any) -> Tuple[ConfidenceBand, ...]:
        items = _as_list(raw)
        if not items:
            self.errors.append("'diagnostic.confidence.bands' must be a non-empty list")
            return ()

        bands = []
        seen = set()
        for i, item in enumerate(items):
            item = _as_dict(item)
            band_id = item.get("id")
            min_delta = item.get("minDelta", 0)
            if not band_id:
                self.errors.append(f"Confidence band at index {i} missing 'id'")
                continue
            if band_id in seen:
                self.errors.append(f"Duplicate confidence band '{band_id}'")
                continue
            if not _is_number(min_delta):
                self.errors.append(f"Confidence band '{band_id}' minDelta must be numeric")
                continue
            seen.add(band_id)
            bands.append(ConfidenceBand(id=band_id, min_delta=min_delta))
        return tuple(bands)

    def _parse_routing_rules(self, items: List[Any], band_ids: Set[str]) -> Tuple[RoutingRule, ...]:
        rules = []
        for i, item in enumerate(items):
            item = _as_dict(item)
            when = _as_dict(item.get("when"))
            then = _as_dict(item.get("then"))
            where = f"Routing rule {item.get('id', i)}"

            primary = then.get("primaryPath")
            if not primary:
                self.errors.append(f"{where} missing 'then.primaryPath'")
                continue
            ok = self._check_path(primary, where)

            secondary = then.get("secondaryPath")
            if secondary is not None:
                ok = self._check_path(secondary, where) and ok

            band = when.get("confidenceBand")
            if band is not None and band not in band_ids:
                self.errors.append(f"{where} references unknown confidence band '{band}'")
                ok = False

            dominant = when.get("dominantSignal")
            if dominant is not None and dominant not in CORE_SIGNALS:
                self.errors.append(f"{where} dominantSignal '{dominant}' is not a core signal")
                ok = False

            if ok:
                rules.append(RoutingRule(
                    phase=when.get("phase"),
                    primary_path=primary,
                    confidence_band=band,
                    dominant_signal=dominant,
                    secondary_path=secondary,
                    name=item.get("id"),
                ))
        return tuple(rules)

    # -------------------------------------------------------------------------
    # Summary logic
    # -------------------------------------------------------------------------

    def _parse_why_evidence(self, section: Dict[str, Any]) -> WhyEvidenceConfig:
        templates = _as_dict(section.get("templates"))
        for name in templates:
            if name not in SIGNALS:
                self.errors.append(f"whyEvidence template for unknown signal '{name}'")

        max_bullets = section.get("maxBullets", DEFAULT_WHY_MAX_BULLETS)
        if not isinstance(max_bullets, int) or max_bullets < 1:
            self.errors.append("summaryLogic.whyEvidence.maxBullets must be a positive integer")
            max_bullets = DEFAULT_WHY_MAX_BULLETS

        extra = {}
        if section.get("mixedSignalBullet"):
            extra["mixed_signal_bullet"] = str(section["mixedSignalBullet"])
        if section.get("noSignalBullet"):
            extra["no_signal_bullet"] = str(section["noSignalBullet"])

        return WhyEvidenceConfig(
            templates=tuple((k, str(v)) for k, v in templates.items() if k in SIGNALS),
            max_bullets=max_bullets,
            **extra,
        )

    def _parse_translation_rules(self, items: List[Any]) -> Tuple[TranslationRule, ...]:
        all_fields = set()
        for fields in self.declared_fields.values():
            all_fields.update(fields)

        rules = []
        for i, item in enumerate(items):
            item = _as_dict(item)
            when = _as_dict(item.get("when"))
            where = f"Intent translation rule {item.get('id', i)}"

            primary = when.get("primaryPath")
            if primary is not None and not self._check_path(primary, where):
                continue

            allowed = self.declared_fields.get(primary, set()) if primary else all_fields
            conditions = []
            ok = True
            for key, expected in when.items():
                if key == "primaryPath":
                    continue
                field_name = key[len(VERSION_PREFIX):] if key.startswith(VERSION_PREFIX) else key
                if field_name not in allowed:
                    self.errors.append(
                        f"{where} condition '{key}' is not a version field declared for "
                        f"'{primary or 'any path'}'"
                    )
                    ok = False
                    continue
                conditions.append((field_name, expected))

            if ok:
                rules.append(TranslationRule(
                    primary_path=primary,
                    conditions=tuple(conditions),
                    then=tuple(_as_dict(item.get("then")).items()),
                ))
        return tuple(rules)

    def _parse_focus(self, section: Dict[str, Any]) -> Tuple[FocusTemplate, ...]:
        builder = section.get("builder")
        if not isinstance(builder, dict):
            self.errors.append("Missing 'focusStatement.builder'")
            return ()

        templates = _as_dict(builder.get("defaultTemplates"))
        maps = _as_dict(builder.get("descriptorMaps"))

        for path_id in maps:
            self._check_path(path_id, "focusStatement.builder.descriptorMaps")

        result = []
        for path_id, template in templates.items():
            if not self._check_path(path_id, "focusStatement.builder.defaultTemplates"):
                continue
            slot, field_name, default = STANDARD_FOCUS_SLOTS.get(path_id, GENERIC_FOCUS_SLOT)
            path_map = _as_dict(maps.get(path_id))

            by_keys = [k for k in path_map if k.startswith("by")]
            if len(by_keys) > 1:
                self.errors.append(f"Descriptor map for '{path_id}' has more than one 'by' table")
            descriptors: Dict[str, str] = {}
            if by_keys:
                field_name = _descriptor_field_from_key(by_keys[0])
                descriptors = {str(k): str(v) for k, v in _as_dict(path_map[by_keys[0]]).items()}

            slot = str(path_map.get("slot", slot))
            default = str(path_map.get("default", default))

            declared = self.declared_fields.get(path_id)
            if field_name and declared and field_name not in declared:
                logger.warning(
                    f"Focus descriptor field '{field_name}' for '{path_id}' is never set by a refinement answer"
                )

            focus = FocusTemplate(
                path_id=path_id,
                template=str(template),
                descriptor_slot=slot,
                descriptor_field=field_name,
                descriptors=tuple(descriptors.items()),
                default_descriptor=default,
            )
            unknown = [s for s in find_slots(focus.template) if s not in focus.allowed_slots]
            for name in unknown:
                self.errors.append(
                    f"Focus template for '{path_id}' uses unknown slot '{{{name}}}' "
                    f"(allowed: {', '.join(focus.allowed_slots)})"
                )
            result.append(focus)
        return tuple(result)

    # -------------------------------------------------------------------------
    # Experiments
    # -------------------------------------------------------------------------

    def _parse_experiments(self, items: List[Any]) -> Tuple[ExperimentDef, ...]:
        experiments = []
        seen = set()
        for i, item in enumerate(items):
            item = _as_dict(item)
            e_id = item.get("id")
            if not e_id:
                self.errors.append(f"Experiment at index {i} missing 'id'")
                continue
            if e_id in seen:
                self.errors.append(f"Duplicate experiment id '{e_id}'")
                continue
            seen.add(e_id)
            if not self._check_path(item.get("path"), f"Experiment '{e_id}'"):
                continue
            experiments.append(ExperimentDef(
                id=e_id,
                path=item["path"],
                label=str(item.get("label", e_id)),
                timeframe=str(item.get("timeframe", "")),
            ))
        return tuple(experiments)

    def _parse_selection_rules(self, section: Dict[str, Any], experiment_ids: Set[str]) -> SelectionRules:
        suggestions = []
        for path_id, ids in _as_dict(section.get("suggestionsByPath")).items():
            if not self._check_path(path_id, "experiments.selectionRules.suggestionsByPath"):
                continue
            ids = tuple(str(x) for x in _as_list(ids))
            for unknown in (x for x in ids if x not in experiment_ids):
                logger.warning(f"Suggested experiment '{unknown}' for '{path_id}' is not in the library")
            suggestions.append((path_id, ids))

        default_pick = section.get("defaultPickCount", DEFAULT_PICK_COUNT)
        max_pick = section.get("maxPickCount", DEFAULT_MAX_PICK_COUNT)
        if not isinstance(max_pick, int) or max_pick < 1:
            self.errors.append("experiments.selectionRules.maxPickCount must be a positive integer")
            max_pick = DEFAULT_MAX_PICK_COUNT
        if not isinstance(default_pick, int) or default_pick < 0:
            self.errors.append("experiments.selectionRules.defaultPickCount must be a non-negative integer")
            default_pick = DEFAULT_PICK_COUNT

        return SelectionRules(
            suggestions_by_path=tuple(suggestions),
            default_pick_count=min(default_pick, max_pick),
            max_pick_count=max_pick,
        )

    # -------------------------------------------------------------------------
    # Templates and profile
    # -------------------------------------------------------------------------

    def _parse_summary_labels(self, section: Dict[str, Any]) -> SummaryLabels:
        employee = dict(EMPLOYEE_LABEL_DEFAULTS)
        employee.update({k: str(v) for k, v in _as_dict(section.get("employee")).items()})
        leader = dict(LEADER_LABEL_DEFAULTS)
        leader.update({k: str(v) for k, v in _as_dict(section.get("leader")).items()})
        return SummaryLabels(employee=tuple(employee.items()), leader=tuple(leader.items()))

    def _parse_profile_fields(self, items: List[Any]) -> Tuple[ProfileField, ...]:
        fields = []
        for i, item in enumerate(items):
            item = _as_dict(item)
            f_id = item.get("id")
            if not f_id:
                self.errors.append(f"Profile field at index {i} missing 'id'")
                continue
            fields.append(ProfileField(
                id=f_id,
                label=str(item.get("label", f_id)),
                type=str(item.get("type", "text")),
                options=tuple(str(o) for o in _as_list(item.get("options"))),
            ))
        return tuple(fields)
