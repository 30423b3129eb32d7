"""Tests for classifier.py and category_registry.py."""

import json

import pytest

from envaudit.analyzer.category_registry import (
    CategoryRegistry,
    CategoryRule,
    load_allow_list,
)
from envaudit.analyzer.classifier import Classifier
from envaudit.analyzer.errors import RuleLoadError
from envaudit.analyzer.models import (
    PRIVATE,
    PUBLIC,
    UNCLASSIFIED,
    CrossReferenceRecord,
    Declaration,
)


@pytest.fixture(scope='module')
def bundled():
    return CategoryRegistry.from_path()


def write_rules(path, categories):
    path.write_text(json.dumps({'categories': categories}), encoding='utf-8')
    return path


class TestVisibility:

    def test_default_prefix(self):
        classifier = Classifier()

        assert classifier.visibility('NEXT_PUBLIC_SITE_URL') == PUBLIC
        assert classifier.visibility('DATABASE_URL') == PRIVATE
        # prefix match is case-sensitive
        assert classifier.visibility('next_public_site_url') == PRIVATE

    def test_custom_prefixes(self):
        classifier = Classifier(public_prefixes=('VITE_', 'PUBLIC_'))

        assert classifier.visibility('VITE_API') == PUBLIC
        assert classifier.visibility('PUBLIC_KEY') == PUBLIC
        assert classifier.visibility('NEXT_PUBLIC_X') == PRIVATE


class TestBundledRules:
    """Test the bundled category table."""

    @pytest.mark.parametrize('name,category', [
        ('DATABASE_URL', 'Database'),
        ('REDIS_HOST', 'Database'),
        ('NEXTAUTH_SECRET', 'Authentication'),
        ('STRIPE_API_KEY', 'API Keys'),
        ('SENTRY_DSN', 'Third-Party Services'),
        ('NEXT_PUBLIC_SITE_NAME', 'Public Client Config'),
        ('NODE_ENV', 'Application Config'),
        ('FOO_BAR', UNCLASSIFIED),
    ])
    def test_categorize(self, bundled, name, category):
        assert bundled.categorize(name) == category

    def test_category_order(self, bundled):
        assert bundled.categories[0] == 'Database'
        assert bundled.category_order('Database') == 0
        assert bundled.category_order(UNCLASSIFIED) == len(bundled.categories)


class TestRegistryLoading:
    """Test rule file loading and first-match-wins ordering."""

    def test_first_match_wins_across_categories(self, tmp_path):
        rules = write_rules(tmp_path / 'rules.json', [
            {'name': 'First', 'contains': ['TOKEN']},
            {'name': 'Second', 'exact': ['GITHUB_TOKEN']},
        ])

        registry = CategoryRegistry.from_path(rules)

        assert registry.categorize('GITHUB_TOKEN') == 'First'

    def test_exact_before_prefix_within_category(self, tmp_path):
        rules = write_rules(tmp_path / 'rules.json', [
            {'name': 'Exact', 'prefix': ['AWS_'], 'exact': ['AWS_REGION']},
        ])

        registry = CategoryRegistry.from_path(rules)

        assert [rule.match_type for rule in registry.rules] == ['exact', 'prefix']

    def test_directory_loads_sorted_and_skips_bad_files(self, tmp_path):
        write_rules(tmp_path / 'b.json', [{'name': 'Later', 'prefix': ['X_']}])
        write_rules(tmp_path / 'a.json', [{'name': 'Earlier', 'prefix': ['X_']}])
        (tmp_path / 'c.json').write_text('{not json', encoding='utf-8')
        (tmp_path / 'allowlist.json').write_text('{"reserved": []}', encoding='utf-8')

        registry = CategoryRegistry.from_path(tmp_path)

        assert registry.categories == ['Earlier', 'Later']
        assert registry.categorize('X_ONE') == 'Earlier'

    def test_missing_path(self, tmp_path):
        with pytest.raises(RuleLoadError):
            CategoryRegistry.from_path(tmp_path / 'nope.json')

    def test_malformed_explicit_file(self, tmp_path):
        bad = tmp_path / 'rules.json'
        bad.write_text('{"categories": {"oops": 1}}', encoding='utf-8')

        with pytest.raises(RuleLoadError):
            CategoryRegistry.from_path(bad)

    def test_category_without_name(self, tmp_path):
        bad = write_rules(tmp_path / 'rules.json', [{'prefix': ['X_']}])

        with pytest.raises(RuleLoadError):
            CategoryRegistry.from_path(bad)

    def test_rule_matching(self):
        assert CategoryRule('DB_', 'prefix', 'Database').matches('DB_HOST')
        assert CategoryRule('_URL', 'suffix', 'Config').matches('API_URL')
        assert CategoryRule('MONGO', 'contains', 'Database').matches('MY_MONGO_URI')
        assert not CategoryRule('PORT', 'exact', 'Config').matches('PORTAL')


class TestAllowList:

    def test_bundled_allow_list(self):
        allowed = load_allow_list()

        assert {'NODE_ENV', 'PATH', 'PORT'} <= allowed

    def test_extra_names_are_merged(self, tmp_path):
        path = tmp_path / 'allow.json'
        path.write_text('{"reserved": ["LEGACY_FLAG"]}', encoding='utf-8')

        assert load_allow_list(path, extra=['KEEP_ME']) == {'LEGACY_FLAG', 'KEEP_ME'}

    def test_malformed_allow_list(self, tmp_path):
        path = tmp_path / 'allow.json'
        path.write_text('["not", "an", "object"]', encoding='utf-8')

        with pytest.raises(RuleLoadError):
            load_allow_list(path)


class TestValueShape:
    """Test template value shapes and placeholders."""

    @pytest.fixture
    def classifier(self):
        return Classifier()

    @pytest.mark.parametrize('name,value,shape,placeholder', [
        ('API_URL', None, 'url', 'https://example.com'),
        ('CALLBACK_ENDPOINT', None, 'url', 'https://example.com'),
        ('UPSTREAM', 'http://10.0.0.1:8080', 'url', 'https://example.com'),
        ('CACHE', 'redis://cache:6379', 'url', 'redis://localhost'),
        ('JWT_SECRET', 'abc', 'secret', 'your-secret-here'),
        ('STRIPE_API_KEY', None, 'secret', 'your-secret-here'),
        ('ENABLE_SIGNUP', 'true', 'boolean', 'false'),
        ('MAINTENANCE', 'Off', 'boolean', 'false'),
        ('PORT', '8080', 'integer', '3000'),
        ('APP_NAME', 'demo', 'string', 'your-value-here'),
        ('APP_NAME', None, 'string', 'your-value-here'),
    ])
    def test_value_shape(self, classifier, name, value, shape, placeholder):
        assert classifier.value_shape(name, value) == (shape, placeholder)

    def test_classify_uses_effective_value(self, bundled):
        record = CrossReferenceRecord(
            name='DATABASE_URL',
            declarations=(
                Declaration('DATABASE_URL', 0, False, '.env.local', 1),
                Declaration('DATABASE_URL', 1, True, '.env', 3, value='postgres://db:5432/app'),
            ),
        )

        classification = Classifier(bundled).classify(record)

        assert classification.visibility == PRIVATE
        assert classification.category == 'Database'
        assert classification.value_shape == 'url'
        assert classification.placeholder == 'postgres://localhost'
