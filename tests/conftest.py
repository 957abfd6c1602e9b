"""
Shared fixtures: a fake TeX toolchain built from small Python scripts.

The fake typesetter reacts to marker macros in doc.tex so each test can pick a
behaviour without a TeX installation:

    \\newpage    one more page in the generated PDF
    \\FAIL       fatal error, no PDF, absolute paths in log/stdout/stderr
    \\NOPAGES    "No pages of output." and no PDF
    \\HANG       never finishes
    \\REF        asks for a rerun on the first pass only
    \\REFLOOP    asks for a rerun on every pass
    \\CITE       classic \\bibliography (\\bibdata in the .aux)
    \\BIBER      biblatex asking for Biber
    \\BIBFAIL    bibliography processor exits with an error
    \\BADPDF     writes an unreadable PDF
    \\BADCONVERT converter exits with an error
    \\LOGDIR     leaves a directory where doc.log should be
    \\SVGDIR     converter leaves a directory where the page SVG should be

Every invocation is appended to calls.log as "<tool> <args...>".
Setting FAKE_TEX_LEGACY in the environment makes the typesetter reject
-cnf-line, like engines older than TeX Live 2018.
"""

import os
import stat
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List

import pytest

from texpreview.contexts.compilation.settings import CompilerSettings

FAKE_TYPESETTER = r'''
import os
import sys
import time

CALLS_LOG = @CALLS_LOG@
args = sys.argv[1:]
with open(CALLS_LOG, "a") as fh:
    fh.write("typesetter " + " ".join(args) + "\n")

KNOWN_OPTIONS = ["-no-shell-escape", "-interaction=", "-file-line-error", "-output-directory=", "--version"]
if not os.environ.get("FAKE_TEX_LEGACY"):
    KNOWN_OPTIONS.append("-cnf-line=")

# web2c behaviour: an unknown option prints a hint and exits 1
for arg in args:
    if arg.startswith("-") and not arg.startswith(tuple(KNOWN_OPTIONS)):
        sys.stderr.write("fake-tex: unrecognized option '%s'\n" % arg)
        sys.stderr.write("Try `fake-tex --help' for more information.\n")
        sys.exit(1)

if "--version" in args:
    print("pdfTeX 3.141592653 (fake)")
    sys.exit(0)

outdir = next(a.split("=", 1)[1] for a in args if a.startswith("-output-directory="))
source = open(os.path.join(os.getcwd(), args[-1]), encoding="utf-8").read()
log_path = os.path.join(outdir, "doc.log")
tex_path = os.path.join(outdir, "doc.tex")

count_path = os.path.join(outdir, "passes.count")
passes = int(open(count_path).read()) + 1 if os.path.exists(count_path) else 1
with open(count_path, "w") as fh:
    fh.write(str(passes))

if r"\HANG" in source:
    time.sleep(60)

log = ["This is pdfTeX, Version 3.141592653 (fake)", "(" + tex_path]

if r"\FAIL" in source:
    log += [tex_path + ":3: Undefined control sequence.", "! Emergency stop.", "l.3 \\FAIL"]
    open(log_path, "w", encoding="latin-1").write("\n".join(log) + "\n")
    print("Output written nowhere, see " + log_path)
    sys.stderr.write("fatal error in " + outdir + "\n")
    sys.exit(1)

if r"\NOPAGES" in source:
    log.append("No pages of output.")
    open(log_path, "w", encoding="latin-1").write("\n".join(log) + "\n")
    sys.exit(0)

if r"\REFLOOP" in source or (r"\REF" in source and passes == 1):
    log.append("LaTeX Warning: Label(s) may have changed. Rerun to get cross-references right.")
if r"\BIBER" in source and passes == 1:
    log.append("Package biblatex Warning: Please (re)run Biber on the file:")
if r"\CITE" in source:
    open(os.path.join(outdir, "doc.aux"), "w").write("\\relax\n\\bibdata{refs}\n")

if r"\LOGDIR" in source:
    os.makedirs(log_path, exist_ok=True)
else:
    open(log_path, "w", encoding="latin-1").write("\n".join(log) + "\n")

pdf_path = os.path.join(outdir, "doc.pdf")
if r"\BADPDF" in source:
    open(pdf_path, "wb").write(b"not a pdf")
    sys.exit(0)

from PyPDF2 import PdfWriter

writer = PdfWriter()
for _ in range(source.count(r"\newpage") + 1):
    writer.add_blank_page(width=200, height=200)
with open(pdf_path, "wb") as fh:
    writer.write(fh)
'''

FAKE_CONVERTER = r'''
import os
import sys

CALLS_LOG = @CALLS_LOG@
args = sys.argv[1:]
with open(CALLS_LOG, "a") as fh:
    fh.write("converter " + " ".join(args) + "\n")

if args == ["-v"]:
    sys.stderr.write("pdftocairo version 0.0 (fake)\n")
    sys.exit(0)

source = open("doc.tex", encoding="utf-8").read()
if r"\BADCONVERT" in source:
    sys.stderr.write("Syntax Error: broken page tree in " + os.getcwd() + "/doc.pdf\n")
    sys.exit(1)

first = args[args.index("-f") + 1]
last = args[args.index("-l") + 1]
assert first == last, "converter must be bounded to a single page"
if r"\SVGDIR" in source:
    os.makedirs(args[-1])
    sys.exit(0)
with open(args[-1], "w", encoding="utf-8") as fh:
    fh.write('<svg xmlns="http://www.w3.org/2000/svg" data-page="%s"><text>page %s</text></svg>' % (first, first))
'''

FAKE_BIBLIOGRAPHY = r'''
import os
import sys

CALLS_LOG = @CALLS_LOG@
TOOL = @TOOL@
args = sys.argv[1:]
with open(CALLS_LOG, "a") as fh:
    fh.write(TOOL + " " + " ".join(args) + "\n")

if args == ["--version"]:
    sys.exit(0)

if r"\BIBFAIL" in open("doc.tex", encoding="utf-8").read():
    sys.stderr.write("I couldn't open database file refs.bib\n")
    sys.exit(2)

open("doc.bbl", "w").write("\\begin{thebibliography}{1}\n\\end{thebibliography}\n")
'''


def _write_tool(path: Path, body: str, **placeholders) -> Path:
    for name, value in placeholders.items():
        body = body.replace(f"@{name}@", repr(value))
    path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@dataclass
class FakeToolchain:
    """Fake binaries plus the settings pointing at them."""

    settings: CompilerSettings
    calls_log: Path

    def calls(self, tool: str = None) -> List[List[str]]:
        """Recorded invocations as argument lists, optionally filtered by tool."""
        if not self.calls_log.exists():
            return []
        entries = [line.split(" ") for line in self.calls_log.read_text().splitlines()]
        return [entry[1:] for entry in entries if tool is None or entry[0] == tool]

    def passes(self) -> List[List[str]]:
        """Typesetter runs that compiled the document (probes excluded)."""
        return [args for args in self.calls("typesetter") if "--version" not in args]


@pytest.fixture
def toolchain(tmp_path) -> FakeToolchain:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    calls_log = str(tmp_path / "calls.log")

    settings = CompilerSettings(
        typesetter=str(_write_tool(bin_dir / "fake-pdflatex", FAKE_TYPESETTER, CALLS_LOG=calls_log)),
        converter=str(_write_tool(bin_dir / "fake-pdftocairo", FAKE_CONVERTER, CALLS_LOG=calls_log)),
        biber=str(
            _write_tool(bin_dir / "fake-biber", FAKE_BIBLIOGRAPHY, CALLS_LOG=calls_log, TOOL="biber")
        ),
        bibtex=str(
            _write_tool(bin_dir / "fake-bibtex", FAKE_BIBLIOGRAPHY, CALLS_LOG=calls_log, TOOL="bibtex")
        ),
        timeout_s=10.0,
        max_passes=3,
    )
    return FakeToolchain(settings=settings, calls_log=Path(calls_log))


@pytest.fixture
def scratch_tmp(tmp_path, monkeypatch) -> Path:
    """Redirect tempfile to an empty directory so workspaces can be observed."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


@pytest.fixture
def clean_env(monkeypatch):
    """Remove TEXPREVIEW_* variables so settings tests start from defaults."""
    for name in list(os.environ):
        if name.startswith("TEXPREVIEW_"):
            monkeypatch.delenv(name, raising=False)
