from app.modules.exports.fonts import is_layout_file, normalize_fonts
from app.tests.conftest import LAYOUT_WITH_GEIST


def test_geist_imports_move_to_next_font_google():
    result = normalize_fonts(LAYOUT_WITH_GEIST)
    assert "geist/font" not in result
    assert 'import { Geist, Geist_Mono } from "next/font/google"' in result
    assert 'const geistSans = Geist({ subsets: ["latin"], variable: "--font-geist-sans" })' in result
    assert 'const geistMono = Geist_Mono({ subsets: ["latin"], variable: "--font-geist-mono" })' in result
    assert "${geistSans.variable} ${geistMono.variable}" in result
    assert "GeistSans" not in result


def test_declarations_follow_the_last_import():
    result = normalize_fonts(LAYOUT_WITH_GEIST)
    assert result.index("import './globals.css'") < result.index("const geistSans")
    assert result.index("const geistSans") < result.index("export const metadata")


def test_normalize_fonts_is_idempotent():
    once = normalize_fonts(LAYOUT_WITH_GEIST)
    assert normalize_fonts(once) == once


def test_source_without_geist_is_unchanged():
    source = "import { Inter } from 'next/font/google'\nconst inter = Inter({ subsets: ['latin'] })\n"
    assert normalize_fonts(source) == source


def test_merges_into_existing_google_import_and_keeps_alias():
    source = (
        "import { Inter } from 'next/font/google'\n"
        "import { GeistSans as Sans } from 'geist/font/sans'\n"
        "const inter = Inter({ subsets: ['latin'] })\n"
        "export const cls = Sans.className\n"
    )
    result = normalize_fonts(source)
    assert "import { Inter, Geist } from 'next/font/google'" in result
    assert "export const cls = geistSans.className" in result
    assert result.count("const geistSans = Geist(") == 1
    assert normalize_fonts(result) == result


def test_is_layout_file():
    assert is_layout_file("app/layout.tsx")
    assert is_layout_file("app/(marketing)/layout.tsx")
    assert not is_layout_file("app/page.tsx")
    assert not is_layout_file("app/layout.ts")


def test_alias_named_like_a_loader_keeps_the_loader_import():
    source = (
        "import { GeistSans as Geist } from 'geist/font/sans'\n"
        "export const cls = Geist.variable\n"
    )
    result = normalize_fonts(source)
    assert 'import { Geist } from "next/font/google"' in result
    assert 'const geistSans = Geist({ subsets: ["latin"], variable: "--font-geist-sans" })' in result
    assert "export const cls = geistSans.variable" in result
    assert normalize_fonts(result) == result
