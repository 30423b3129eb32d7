"""Tests for context_resolver.py."""

import pytest

from envaudit.analyzer.context_resolver import ContextResolver
from envaudit.analyzer.models import PRIVATELY_SCOPED, PUBLICLY_EXPOSED, UNKNOWN_CONTEXT


@pytest.fixture
def resolver():
    return ContextResolver(
        client_markers=('use client',),
        client_globs=('*.client.js', '*.client.tsx'),
    )


class TestMarkers:
    """Test marker directive and file-name convention detection."""

    def test_double_quoted_directive(self, resolver):
        assert resolver.is_marked('app/page.tsx', '"use client";\nexport default function Page() {}\n')

    def test_single_quoted_directive_without_semicolon(self, resolver):
        assert resolver.is_marked('app/page.jsx', "'use client'\nimport React from 'react'\n")

    def test_directive_after_comments(self, resolver):
        source = "// Copyright header\n/* eslint-disable */\n'use client';\n"

        assert resolver.is_marked('app/page.tsx', source)

    def test_directive_after_other_directive(self, resolver):
        assert resolver.is_marked('app/page.js', '"use strict";\n"use client";\n')

    def test_directive_after_first_statement_is_ignored(self, resolver):
        source = "import React from 'react';\n'use client';\n"

        assert not resolver.is_marked('app/page.tsx', source)

    def test_marker_inside_string_is_ignored(self, resolver):
        source = "const note = 'use client';\n"

        assert not resolver.is_marked('app/note.js', source)

    def test_client_glob(self, resolver):
        assert resolver.is_marked('src/button.client.js', 'export const b = 1;\n')
        assert resolver.is_marked('src/Modal.client.tsx', '')
        assert not resolver.is_marked('src/button.server.js', '')

    def test_custom_marker(self):
        resolver = ContextResolver(client_markers=('use browser',))

        assert resolver.is_marked('a.js', '"use browser";\n')
        assert not resolver.is_marked('a.js', '"use client";\n')


class TestResolve:
    """Test per-file context over the relative import graph."""

    def test_plain_files_are_private(self, resolver):
        contexts = resolver.resolve([
            ('lib/db.ts', 'export const db = 1;\n'),
            ('settings.py', 'import os\n'),
        ])

        assert contexts == {'lib/db.ts': PRIVATELY_SCOPED, 'settings.py': PRIVATELY_SCOPED}

    def test_client_imports_make_targets_unknown(self, resolver):
        contexts = resolver.resolve([
            ('components/Nav.tsx', '"use client";\nimport { fmt } from "../lib/format";\n'),
            ('lib/format.ts', "import { pad } from './pad';\nexport const fmt = pad;\n"),
            ('lib/pad.ts', 'export const pad = (s) => s;\n'),
            ('lib/server.ts', 'export const s = 1;\n'),
        ])

        assert contexts['components/Nav.tsx'] == PUBLICLY_EXPOSED
        assert contexts['lib/format.ts'] == UNKNOWN_CONTEXT
        assert contexts['lib/pad.ts'] == UNKNOWN_CONTEXT
        assert contexts['lib/server.ts'] == PRIVATELY_SCOPED

    def test_require_and_dynamic_import(self, resolver):
        contexts = resolver.resolve([
            ('widget.client.js', "const a = require('./a');\nconst b = import('./b');\n"),
            ('a.js', ''),
            ('b/index.ts', ''),
        ])

        assert contexts['a.js'] == UNKNOWN_CONTEXT
        assert contexts['b/index.ts'] == UNKNOWN_CONTEXT

    def test_server_importing_server_stays_private(self, resolver):
        contexts = resolver.resolve([
            ('api/route.ts', "import { db } from '../lib/db';\n"),
            ('lib/db.ts', 'export const db = 1;\n'),
        ])

        assert contexts['lib/db.ts'] == PRIVATELY_SCOPED

    def test_marked_file_imported_by_client_stays_public(self, resolver):
        contexts = resolver.resolve([
            ('a.client.js', "import './b';\n"),
            ('b.js', '"use client";\n'),
        ])

        assert contexts['b.js'] == PUBLICLY_EXPOSED

    def test_unresolvable_imports_are_ignored(self, resolver):
        contexts = resolver.resolve([
            ('page.client.tsx', "import x from './missing';\nimport React from 'react';\n"),
        ])

        assert contexts == {'page.client.tsx': PUBLICLY_EXPOSED}
