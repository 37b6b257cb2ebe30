from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from jinja2 import Environment, select_autoescape

from .types import CheckResult, LicenseInfo, Violation

FORMATS = ("table", "csv", "json", "markdown", "html")
LIST_HEADERS = ["Gem", "Version", "License", "Source", "Homepage"]
CHECK_HEADERS = ["Gem", "Version", "License", "Source", "Reason"]

env = Environment(autoescape=select_autoescape(["html", "xml"], default_for_string=True))


def _generated_at() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _gem_row(info: LicenseInfo) -> List[str]:
    return [info.name, info.version, info.license_label, info.source.value, info.homepage or ""]


def _violation_row(violation: Violation) -> List[str]:
    return _gem_row(violation.info)[:4] + [violation.reason]


def _check_sections(result: CheckResult) -> list[tuple[str, list[str], list[list[str]]]]:
    return [
        ("PASSED", LIST_HEADERS, [_gem_row(info) for info in result.passed]),
        ("VIOLATIONS", CHECK_HEADERS, [_violation_row(item) for item in result.violations]),
        ("WARNINGS", CHECK_HEADERS, [_violation_row(item) for item in result.warnings]),
    ]


def _ascii_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    widths = [max([len(header)] + [len(str(row[index])) for row in rows]) for index, header in enumerate(headers)]
    border = "+-" + "-+-".join("-" * width for width in widths) + "-+"

    def _line(values: Sequence[str]) -> str:
        return "| " + " | ".join(str(value).ljust(widths[index]) for index, value in enumerate(values)) + " |"

    return "\n".join([border, _line(headers), border, *(_line(row) for row in rows), border])


def _escape_markdown(value: str) -> str:
    return value.replace("|", "\\|")


def _markdown_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join("---" for _ in headers) + " |",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_escape_markdown(str(value)) for value in row) + " |")
    return "\n".join(lines)


def _csv(rows: Iterable[Sequence[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


HTML_TEMPLATE = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{{ title }}</title>
  <style>
    body { font-family: Arial, sans-serif; margin: 2rem; }
    h1, h2 { color: #1f2937; }
    table { border-collapse: collapse; width: 100%; margin-bottom: 1.5rem; }
    th, td { border: 1px solid #d1d5db; padding: 0.5rem; }
    th { background: #f3f4f6; text-align: left; }
    .badge { display: inline-block; padding: 0.35rem 0.6rem; border-radius: 0.4rem; font-weight: 600; }
    .badge.good { background: #d1fae5; color: #065f46; }
    .badge.bad { background: #fee2e2; color: #991b1b; }
  </style>
</head>
<body>
  <h1>{{ title }}</h1>
  <p>Generated at: {{ generated_at }}</p>
  {% if summary %}
  <p>
    <span class="badge {{ 'good' if summary.violations == 0 else 'bad' }}">
      {{ summary.passed }} passed / {{ summary.violations }} violations / {{ summary.warnings }} warnings
    </span>
  </p>
  {% endif %}
  {% for section in sections %}
  <section>
    {% if section.title %}<h2>{{ section.title }}</h2>{% endif %}
    <table>
      <thead><tr>{% for header in section.headers %}<th>{{ header }}</th>{% endfor %}</tr></thead>
      <tbody>
        {% for row in section.rows %}
        <tr>{% for value in row %}<td>{{ value }}</td>{% endfor %}</tr>
        {% else %}
        <tr><td colspan="{{ section.headers|length }}">None</td></tr>
        {% endfor %}
      </tbody>
    </table>
  </section>
  {% endfor %}
</body>
</html>
"""


def _render_html(title: str, sections: list[dict], summary: Optional[dict] = None) -> str:
    template = env.from_string(HTML_TEMPLATE)
    return template.render(title=title, generated_at=_generated_at(), sections=sections, summary=summary).strip()


def render_list(infos: Sequence[LicenseInfo], fmt: str = "table") -> str:
    fmt = fmt.lower()
    rows = [_gem_row(info) for info in infos]
    if fmt == "table":
        return _ascii_table(LIST_HEADERS, rows)
    if fmt == "csv":
        return _csv([LIST_HEADERS, *rows])
    if fmt == "json":
        payload = {"generated_at": _generated_at(), "gems": [info.as_dict() for info in infos]}
        return json.dumps(payload, indent=2)
    if fmt in {"markdown", "md"}:
        return _markdown_table(LIST_HEADERS, rows)
    if fmt == "html":
        return _render_html("Gem licenses", [{"title": None, "headers": LIST_HEADERS, "rows": rows}])
    raise ValueError(f"Unsupported format: {fmt}")


def render_check(result: CheckResult, fmt: str = "table") -> str:
    fmt = fmt.lower()
    sections = _check_sections(result)
    if fmt == "table":
        return "\n\n".join(f"{title}\n{_ascii_table(headers, rows)}" for title, headers, rows in sections)
    if fmt == "csv":
        rows: list[list[str]] = [["Gem", "Version", "License", "Source", "Status", "Reason"]]
        rows.extend(_gem_row(info)[:4] + ["PASSED", ""] for info in result.passed)
        rows.extend(_violation_row(item)[:4] + ["VIOLATION", item.reason] for item in result.violations)
        rows.extend(_violation_row(item)[:4] + ["WARNING", item.reason] for item in result.warnings)
        return _csv(rows)
    if fmt == "json":
        payload = {
            "generated_at": _generated_at(),
            "summary": result.summary(),
            "violations": [item.as_dict() for item in result.violations],
            "warnings": [item.as_dict() for item in result.warnings],
            "passed": [info.as_dict() for info in result.passed],
        }
        return json.dumps(payload, indent=2)
    if fmt in {"markdown", "md"}:
        return "\n\n".join(f"## {title}\n\n{_markdown_table(headers, rows)}" for title, headers, rows in sections)
    if fmt == "html":
        return _render_html(
            "License check",
            [{"title": title, "headers": headers, "rows": rows} for title, headers, rows in sections],
            summary=result.summary(),
        )
    raise ValueError(f"Unsupported format: {fmt}")


def write_output(content: str, destination: Path | None) -> str:
    if destination:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(content if content.endswith("\n") else content + "\n")
    return content
