"""The analysis pipeline: declarations + usages -> records + anomalies."""
import logging
from typing import Iterable, List, Optional, Sequence

from .anomaly_detector import AnomalyDetector
from .category_registry import CategoryRegistry
from .classifier import Classifier
from .cross_reference import CrossReferenceIndex
from .declaration_store import DeclarationStore
from .errors import EmptyInputError
from .models import UNCLASSIFIED, AnalysisResult, AnalysisSettings, DeclarationLayer, TemplateEntry
from .usage_scanner import SourceFile, UsageScanner

logger = logging.getLogger(__name__)


def analyze(layers: Sequence[DeclarationLayer], sources: Sequence[SourceFile],
            allow_list: Optional[Iterable[str]] = None,
            registry: Optional[CategoryRegistry] = None,
            settings: Optional[AnalysisSettings] = None) -> AnalysisResult:
    """Run the whole pipeline once.

    Args:
        layers: Declaration layers (lower ordinal = higher priority)
        sources: (path, text) pairs already selected by the caller
        allow_list: Names exempt from UNUSED flagging
        registry: Category rules; defaults to the bundled rule table
        settings: Engine settings; defaults to AnalysisSettings()

    Returns:
        AnalysisResult with records sorted by name and anomalies sorted by
        (name, file, line, kind)

    Raises:
        EmptyInputError: If both layers and sources are empty
    """
    layers = list(layers)
    sources = list(sources)
    if not layers and not sources:
        raise EmptyInputError()

    settings = settings or AnalysisSettings()
    if registry is None:
        registry = CategoryRegistry.from_path()

    store = DeclarationStore()
    declarations = store.load(layers)

    scanner = UsageScanner(settings)
    usages = scanner.scan(sources)

    index = CrossReferenceIndex.build(declarations, usages, allow_list)
    classifier = Classifier(registry, settings.public_prefixes)
    detector = AnomalyDetector(classifier, settings.max_typo_distance)

    result = AnalysisResult(
        records=index.records,
        anomalies=detector.detect(index),
        classifications={name: classifier.classify(record) for name, record in index.items()},
        dynamic_usage_count=index.dynamic_usage_count,
        dynamic_usages=list(index.dynamic_usages),
        manual_review=detector.manual_review(index),
        parse_errors=store.errors,
        scan_errors=scanner.errors,
    )
    logger.info(
        "Analyzed %d layers and %d sources: %d symbols, %d anomalies",
        len(layers), len(sources), len(result.records), len(result.anomalies),
    )
    return result


def template_entries(result: AnalysisResult,
                     registry: Optional[CategoryRegistry] = None) -> List[TemplateEntry]:
    """One entry per declared-or-used symbol, ordered by category then name.

    Categories follow the rule-table order when a registry is given,
    alphabetical order otherwise; Unclassified always comes last.
    """
    entries = [
        TemplateEntry(
            name=record.name,
            category=result.classifications[record.name].category,
            value_shape=result.classifications[record.name].value_shape,
            placeholder=result.classifications[record.name].placeholder,
        )
        for record in result.records
    ]

    if registry is not None:
        def category_key(entry):
            return (registry.category_order(entry.category), entry.category)
    else:
        def category_key(entry):
            return (entry.category == UNCLASSIFIED, entry.category)

    entries.sort(key=lambda entry: (category_key(entry), entry.name))
    return entries
