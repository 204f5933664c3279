"""
Career Discovery Report rendering.

Turns the synthesis, Odyssey paths, Career Canvas and next steps into
an email (subject, HTML body, plain-text body) with Jinja2 templates.
Sections with nothing to show are left out.
"""

from dataclasses import dataclass
from typing import List, Optional

from jinja2 import DictLoader, Environment, select_autoescape

from ..agents.synthesis import SynthesisReport
from ..schemas.interview_data import (
    CAREER_CANVAS_BLOCKS,
    MIN_RATING,
    ODYSSEY_DIMENSIONS,
    ODYSSEY_PATHS,
)
from ..schemas.session import Session

REPORT_TITLE = "Your Career Discovery Report"

QUOTE = '"The fox knows many things, but the hedgehog knows one big thing."'
QUOTE_SOURCE = "Archilochus, via Jim Collins"
CLOSING = (
    "The goal isn't to find the one perfect answer today. It's to see the "
    "patterns clearly enough to take the next right step."
)

_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><style>
  body{font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',sans-serif;max-width:680px;margin:0 auto;padding:40px 20px;color:#1B2A4A;background:#F0F4F8}
  .card{background:white;border-radius:16px;padding:32px;margin-bottom:24px}
  h1{color:#1B2A4A;font-size:28px;margin:0 0 8px}
  h2{color:#1B2A4A;font-size:18px;border-bottom:2px solid #C9A84C;padding-bottom:8px}
  h3{color:#6B7A99;font-size:11px;text-transform:uppercase;letter-spacing:0.08em;margin:0 0 4px}
  p{line-height:1.7;color:#2D3A5A;margin:0 0 8px}
  .tagline{color:#6B7A99;font-size:16px}
  .block{background:#F0F4F8;border-radius:10px;padding:16px;margin-bottom:12px}
  .score-pill{display:inline-block;background:#1B2A4A;color:white;border-radius:20px;padding:3px 10px;font-size:12px;margin:4px 4px 0 0}
  .quote{border-left:4px solid #C9A84C;padding-left:20px;margin:24px 0;font-style:italic;color:#6B7A99}
  .gold{color:#C9A84C;font-weight:600}
  .lines{white-space:pre-line}
  footer{text-align:center;color:#6B7A99;font-size:13px;margin-top:32px}
</style></head>
<body>
  <div class="card">
    <h1>{{ title }}</h1>
    <p class="tagline">Hi {{ name }}, here's everything that emerged from your career discovery interview.</p>
  </div>
{% if synthesis.hedgehog_overlap %}
  <div class="card"><h2>The Hedgehog Overlap</h2><p>{{ synthesis.hedgehog_overlap }}</p></div>
{% endif %}
{% if synthesis.zone_of_genius %}
  <div class="card"><h2>Your Zone of Genius</h2><p>{{ synthesis.zone_of_genius }}</p></div>
{% endif %}
{% if synthesis.ikigai_sweet_spot %}
  <div class="card"><h2>Your Ikigai Sweet Spot</h2><p>{{ synthesis.ikigai_sweet_spot }}</p></div>
{% endif %}
{% if synthesis.energy_patterns_positive or synthesis.energy_patterns_draining %}
  <div class="card"><h2>Energy Patterns</h2>
  {% if synthesis.energy_patterns_positive %}
    <h3 style="color:#2D9E6B">Gives You Energy</h3><p class="lines">{{ synthesis.energy_patterns_positive }}</p>
  {% endif %}
  {% if synthesis.energy_patterns_draining %}
    <h3 style="color:#D94F4F;margin-top:16px">Drains Your Energy</h3><p class="lines">{{ synthesis.energy_patterns_draining }}</p>
  {% endif %}
  </div>
{% endif %}
{% if synthesis.key_insight %}
  <div class="card" style="border-left:4px solid #C9A84C"><h2>Key Insight</h2><p>{{ synthesis.key_insight }}</p></div>
{% endif %}
{% if paths %}
  <div class="card"><h2>Three Odyssey Paths</h2>
  {% for path in paths %}
    <div class="block"><p class="gold">{{ path.label }}</p><p style="font-size:14px;margin:8px 0">{{ path.text }}</p>
    {% for score in path.scores %}<span class="score-pill">{{ score.label }}: {{ score.value }}/5</span>{% endfor %}
    </div>
  {% endfor %}
  </div>
{% endif %}
{% if canvas %}
  <div class="card"><h2>Career Canvas</h2>
  {% for block in canvas %}
    <div class="block"><h3>{{ block.title }}</h3><p class="lines" style="font-size:14px">{{ block.text }}</p></div>
  {% endfor %}
  </div>
{% endif %}
{% if next_steps %}
  <div class="card"><h2>Your Next Steps</h2>
  {% for step in next_steps %}
    <div class="block"><p><strong>{{ loop.index }}. {{ step.action }}</strong>{% if step.deadline %}<br><span style="font-size:13px;color:#6B7A99">By: {{ step.deadline }}</span>{% endif %}</p></div>
  {% endfor %}
  </div>
{% endif %}
  <div class="quote"><p>{{ quote }} {{ quote_source }}</p><p>{{ closing }}</p></div>
  <footer>Career Discovery Interview</footer>
</body></html>
"""

_TEXT_TEMPLATE = """{{ title }}

Hi {{ name }},
{% for paragraph in paragraphs %}
{{ paragraph }}
{% endfor %}
{{ quote }} {{ quote_source }}
"""

_env = Environment(
    loader=DictLoader({"report.html": _HTML_TEMPLATE, "report.txt": _TEXT_TEMPLATE}),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass
class RenderedReport:
    subject: str
    html: str
    text: str


def report_subject(user_name: Optional[str]) -> str:
    name = (user_name or "").strip()
    return f"{name}'s Career Discovery Report" if name else REPORT_TITLE


class ReportRenderer:
    """Renders the final report email. Pure: no I/O, same input gives same output."""

    def render(
        self,
        synthesis: SynthesisReport,
        session: Session,
        user_name: Optional[str] = None,
    ) -> RenderedReport:
        context = {
            "title": REPORT_TITLE,
            "name": (user_name or "").strip() or "there",
            "synthesis": synthesis,
            "paths": self._paths(session),
            "canvas": self._canvas(session),
            "next_steps": [s for s in session.next_steps if s.action.strip()],
            "quote": QUOTE,
            "quote_source": QUOTE_SOURCE,
            "closing": CLOSING,
            "paragraphs": [
                p for p in (
                    synthesis.hedgehog_overlap,
                    synthesis.zone_of_genius,
                    synthesis.ikigai_sweet_spot,
                    synthesis.key_insight,
                ) if p
            ],
        }
        return RenderedReport(
            subject=report_subject(user_name),
            html=_env.get_template("report.html").render(context),
            text=_env.get_template("report.txt").render(context),
        )

    @staticmethod
    def _paths(session: Session) -> List[dict]:
        rendered = []
        for path in ODYSSEY_PATHS:
            text = session.odyssey_paths.get(path.id, "").strip()
            if not text:
                continue
            scores = session.odyssey_ratings.get(path.id, {})
            rendered.append({
                "label": f"{path.label}: {path.title}",
                "text": text,
                "scores": [
                    {"label": dim.label, "value": scores[dim.id]}
                    for dim in ODYSSEY_DIMENSIONS
                    if scores.get(dim.id, 0) >= MIN_RATING
                ],
            })
        return rendered

    @staticmethod
    def _canvas(session: Session) -> List[dict]:
        return [
            {"title": block.title, "text": session.career_canvas[block.id]}
            for block in CAREER_CANVAS_BLOCKS
            if session.career_canvas.get(block.id, "").strip()
        ]
