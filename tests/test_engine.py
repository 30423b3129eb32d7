"""End-to-end tests for engine.py.

Runs the whole pipeline over in-memory layers and sources:
declarations -> usages -> index -> classification -> anomalies.
"""

import json

import pytest

from envaudit.analyzer.category_registry import CategoryRegistry
from envaudit.analyzer.engine import analyze, template_entries
from envaudit.analyzer.errors import EmptyInputError
from envaudit.analyzer.models import (
    DECLARED_WITHOUT_VALUE,
    MISSING,
    SCOPE_MISMATCH,
    TYPO_CANDIDATE,
    UNCLASSIFIED,
    AnalysisResult,
    AnalysisSettings,
    Classification,
    CrossReferenceRecord,
    DeclarationLayer,
)


@pytest.fixture(scope='module')
def registry():
    return CategoryRegistry.from_path()


@pytest.fixture
def project():
    """A small Next.js-style project."""
    layers = [
        DeclarationLayer('.env.local', 'DATABASE_URL=postgres://localhost/app\nSTRIPE_SECRET_KEY=sk_test\n', 0),
        DeclarationLayer(
            '.env.example',
            'DATABASE_URL=\nSTRIPE_SECRET_KEY=\nNEXT_PUBLIC_SITE_URL=https://example.org\n'
            'SMTP_PASSWORD=\nLEGACY_FLAG=1\nNODE_ENV=development\n',
            1,
        ),
    ]
    sources = [
        ('app/checkout/page.tsx',
         '"use client";\n'
         'const key = process.env.STRIPE_SECRET_KEY;\n'
         'const site = process.env.NEXT_PUBLIC_SITE_URL;\n'),
        ('lib/db.ts',
         'export const url = process.env.DATABSE_URL;\n'
         'export const pool = process.env.DATABASE_URL;\n'),
        ('lib/mail.ts', 'const { SMTP_PASSWORD } = process.env;\nsend(SMTP_PASSWORD);\n'),
        ('lib/dyn.ts', 'export const get = (name) => process.env[name];\n'),
    ]
    return layers, sources


class TestEndToEnd:

    def test_declared_used_missing_scenario(self):
        layers = [DeclarationLayer('.env', 'NEXT_PUBLIC_A=1\nNEXT_PUBLIC_B=\n', 0)]
        sources = [
            ('app/page.tsx', '"use client";\nuse(process.env.NEXT_PUBLIC_A, process.env.NEXT_PUBLIC_B);\n'),
            ('lib/server.ts', 'use(process.env.C);\n'),
        ]

        result = analyze(layers, sources)
        records = {record.name: record for record in result.records}

        assert [record.name for record in result.records] == ['C', 'NEXT_PUBLIC_A', 'NEXT_PUBLIC_B']
        assert records['NEXT_PUBLIC_A'].flags == frozenset()
        assert records['NEXT_PUBLIC_A'].effective_value == '1'
        assert records['NEXT_PUBLIC_B'].flags == frozenset()
        assert records['C'].flags == frozenset({MISSING})
        assert [(a.kind, a.name) for a in result.anomalies] == [
            (DECLARED_WITHOUT_VALUE, 'NEXT_PUBLIC_B'),
        ]

    def test_project(self, project, registry):
        layers, sources = project

        result = analyze(layers, sources, allow_list={'NODE_ENV'}, registry=registry)

        assert result.missing == ['DATABSE_URL']
        assert result.unused == ['LEGACY_FLAG']
        assert [(a.kind, a.name) for a in result.anomalies] == [
            (TYPO_CANDIDATE, 'DATABSE_URL'),
            (DECLARED_WITHOUT_VALUE, 'SMTP_PASSWORD'),
            (SCOPE_MISMATCH, 'STRIPE_SECRET_KEY'),
        ]
        assert result.dynamic_usage_count == 1
        assert result.dynamic_usages[0].file == 'lib/dyn.ts'

    def test_override_resolution(self, project, registry):
        layers, sources = project

        result = analyze(layers, sources, registry=registry)
        record = next(r for r in result.records if r.name == 'DATABASE_URL')

        assert record.effective_value == 'postgres://localhost/app'
        assert [d.source_file for d in record.declarations] == ['.env.local', '.env.example']

    def test_classifications(self, project, registry):
        layers, sources = project

        result = analyze(layers, sources, registry=registry)

        assert result.classifications['NEXT_PUBLIC_SITE_URL'].visibility == 'Public'
        assert result.classifications['DATABASE_URL'].category == 'Database'
        assert result.classifications['STRIPE_SECRET_KEY'].value_shape == 'secret'

    def test_destructured_alias_counts_as_usage(self, project, registry):
        layers, sources = project

        result = analyze(layers, sources, registry=registry)
        record = next(r for r in result.records if r.name == 'SMTP_PASSWORD')

        assert record.usage_count == 2
        assert record.file_count == 1

    def test_errors_are_collected(self, registry):
        layers = [DeclarationLayer('.env', 'GOOD=1\nnot a line\n', 0)]
        sources = [('ok.ts', 'process.env.GOOD;\n'), ('bad.ts', b'\xff\xfe')]

        result = analyze(layers, sources, registry=registry)

        assert [r.name for r in result.records] == ['GOOD']
        assert [(e.file, e.line) for e in result.parse_errors] == [('.env', 2)]
        assert [e.file for e in result.scan_errors] == ['bad.ts']

    def test_only_layers(self, registry):
        result = analyze([DeclarationLayer('.env', 'A=1\n', 0)], [], registry=registry)

        assert result.unused == ['A']

    def test_empty_input(self):
        with pytest.raises(EmptyInputError):
            analyze([], [])


class TestDeterminism:

    def test_idempotent(self, project, registry):
        layers, sources = project

        first = analyze(layers, sources, registry=registry)
        second = analyze(layers, sources, registry=registry)

        assert json.dumps(first.as_dict()) == json.dumps(second.as_dict())

    def test_worker_count_does_not_change_output(self, project, registry):
        layers, sources = project

        single = analyze(layers, sources, registry=registry, settings=AnalysisSettings(max_workers=1))
        pooled = analyze(layers, sources, registry=registry, settings=AnalysisSettings(max_workers=8))

        assert single.as_dict() == pooled.as_dict()

    def test_input_order_does_not_change_output(self, project, registry):
        layers, sources = project

        forward = analyze(layers, sources, registry=registry)
        backward = analyze(list(reversed(layers)), list(reversed(sources)), registry=registry)

        assert forward.as_dict() == backward.as_dict()


class TestTemplateEntries:

    def test_grouped_by_category_then_name(self, project, registry):
        layers, sources = project
        result = analyze(layers, sources, registry=registry)

        entries = template_entries(result, registry)
        order = [registry.category_order(entry.category) for entry in entries]

        assert order == sorted(order)
        assert len({entry.name for entry in entries}) == len(entries)
        database = [entry.name for entry in entries if entry.category == 'Database']
        assert database == sorted(database)

    def test_placeholders(self, project, registry):
        layers, sources = project
        result = analyze(layers, sources, registry=registry)

        entries = {entry.name: entry for entry in template_entries(result, registry)}

        assert entries['DATABASE_URL'].placeholder == 'postgres://localhost'
        assert entries['STRIPE_SECRET_KEY'].placeholder == 'your-secret-here'
        assert entries['NEXT_PUBLIC_SITE_URL'].placeholder == 'https://example.com'

    def test_without_registry_unclassified_is_last(self):
        result = AnalysisResult(records=[
            CrossReferenceRecord(name='ZETA'),
            CrossReferenceRecord(name='ALPHA'),
            CrossReferenceRecord(name='OTHER'),
        ])
        result.classifications = {
            'ZETA': Classification('Private', 'Auth', 'string', 'your-value-here'),
            'ALPHA': Classification('Private', UNCLASSIFIED, 'string', 'your-value-here'),
            'OTHER': Classification('Private', 'Auth', 'string', 'your-value-here'),
        }

        entries = template_entries(result)

        assert [entry.name for entry in entries] == ['OTHER', 'ZETA', 'ALPHA']
