"""Normalise assistant answers to the four-section markdown layout."""

SUMMARY_HEADER = "### 🎯 Resumen Ejecutivo"
ANALYSIS_HEADER = "### 📋 Análisis Detallado"
ACTIONS_HEADER = "### ⚡ Acciones Recomendadas"
CONCLUSIONS_HEADER = "### 💡 Conclusiones"

SECTION_MARKERS = ("### 🎯", "### 📋", "### ⚡", "### 💡")

# Appended, in order, for every section the answer lacks
_DEFAULT_SECTIONS: tuple[tuple[str, list[str]], ...] = (
    ("### 📋", [ANALYSIS_HEADER, "Análisis específico del tema abordado."]),
    (
        "### ⚡",
        [
            ACTIONS_HEADER,
            "- Revisar la información proporcionada",
            "- Implementar las sugerencias relevantes",
        ],
    ),
    ("### 💡", [CONCLUSIONS_HEADER, "Información procesada y lista para implementación."]),
)


def _rewrite_headings(lines: list[str]) -> list[str]:
    """Map ``#``/``##`` headings onto section headings, skipping fenced code."""
    out: list[str] = []
    in_code = False
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("```"):
            in_code = not in_code
            out.append(line)
        elif in_code or stripped.startswith("### "):
            out.append(line)
        elif stripped.startswith("## "):
            out.append("### 📋 " + stripped[3:])
        elif stripped.startswith("# "):
            out.append("### 🎯 " + stripped[2:])
        else:
            out.append(line)
    return out


def format_response(text: str) -> str:
    """Ensure ``text`` has summary, analysis, actions and conclusions sections.

    Text that already carries all four section headings is returned as-is.
    Otherwise top-level headings are rewritten, a summary heading is
    prepended when none exists, and default bodies are appended for the
    remaining missing sections. Fenced code blocks are never touched.
    """
    if all(marker in text for marker in SECTION_MARKERS):
        return text

    lines = _rewrite_headings(text.split("\n"))
    if "### 🎯" not in "\n".join(lines):
        lines = [SUMMARY_HEADER, "", *lines]

    body = "\n".join(lines)
    for marker, section in _DEFAULT_SECTIONS:
        if marker not in body:
            lines += ["", *section]
    return "\n".join(lines)
