"""
HTML for the film details panel shown next to the scatterplots.

A renderer returns None when no film is selected; the dashboard hides the
panel in that case.
"""
from typing import Any, Mapping, Optional

import numpy as np

from field_parsing import (
    escape_html,
    format_js_number,
    format_money,
    format_outcome,
    to_num,
)

MAX_CLAIMS = 5


def _get(film: Mapping[str, Any], key: str, default: Any = None) -> Any:
    value = film.get(key, default)
    return default if value is None else value


def _year_label(film: Mapping[str, Any]) -> str:
    year = to_num(film.get("year"))
    return f" ({format_js_number(year)})" if year == year else ""


def _anticipatory_badge(film: Mapping[str, Any]) -> str:
    flag = film.get("anticipatory")
    if not isinstance(flag, (bool, np.bool_)):
        return ""
    label = "Anticipatory film" if flag else "Non-anticipatory film"
    return f'<span class="film-anticip">{label}</span>'


def _claim_block(index: int, claim: Any, past: Any, present: Any) -> str:
    text = claim.get("claim_text") if isinstance(claim, Mapping) else None
    text = escape_html(text) if text else "(no text)"
    return (
        '<div class="film-claim">'
        f'<div class="film-claim-header">Claim {index + 1}</div>'
        f'<div class="film-claim-text">"{text}"</div>'
        '<div class="film-claim-outcomes">'
        f"<div>At release : <strong>{format_outcome(past)}</strong></div>"
        f"<div>Now : <strong>{format_outcome(present)}</strong></div>"
        "</div>"
        "</div>"
    )


def render_claims_details(film: Optional[Mapping[str, Any]],
                          max_claims: int = MAX_CLAIMS) -> Optional[str]:
    """
    Details for a film on the prediction timeline.

    Args:
        film: Selected film record (title, year, score, gross, anticipatory,
            claims, past_outcomes, present_outcomes), or None
        max_claims: Number of claims shown before summarising the rest

    Returns:
        Panel HTML, or None when nothing is selected
    """
    if film is None:
        return None

    claims = list(_get(film, "claims", []))
    past = list(_get(film, "past_outcomes", []))
    present = list(_get(film, "present_outcomes", []))

    blocks = []
    for i, claim in enumerate(claims[:max_claims]):
        past_out = past[i] if i < len(past) else None
        present_out = present[i] if i < len(present) else None
        blocks.append(_claim_block(i, claim, past_out, present_out))

    more = ""
    if len(claims) > max_claims:
        more = (f'<p class="film-claims-more">(+ {len(claims) - max_claims} '
                f"more claims in the dataset)</p>")

    score = to_num(film.get("score"))
    score_label = f"{score:.2f}" if score == score else "NA"
    claims_html = "".join(blocks) if blocks else "<p><em>No structured claims available.</em></p>"

    return (
        f"<h3>{escape_html(_get(film, 'title', 'Unknown title'))}{_year_label(film)}</h3>"
        '<p class="film-meta">'
        f"Prediction score : <strong>{score_label}</strong><br/>"
        f"Worldwide gross (2020$) : <strong>{format_money(film.get('gross'))}</strong><br/>"
        f"{_anticipatory_badge(film)}"
        "</p>"
        f'<div class="film-claims-wrapper">{claims_html}{more}</div>'
    )


def render_justification_details(film: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Details for a film on the results scatter: money figures and the score rationale."""
    if film is None:
        return None

    score = to_num(film.get("score"))
    score_label = f"{score:.2f}" if score == score else "NA"

    justification = str(_get(film, "score_evaluation", "")).strip()
    if justification:
        body = (
            '<div class="film-claim">'
            '<div class="film-claim-header">Score justification</div>'
            f'<div class="film-claim-text">{escape_html(justification)}</div>'
            "</div>"
        )
    else:
        body = '<p class="muted">No score justification available for this film.</p>'

    return (
        f"<h3>{escape_html(_get(film, 'title', 'Unknown title'))}{_year_label(film)}</h3>"
        '<p class="film-meta">'
        f"Prediction score: <strong>{score_label}</strong><br/>"
        f"Worldwide box office (2020$): <strong>{escape_html(format_money(film.get('boxoffice')))}</strong><br/>"
        f"Budget (2020$): <strong>{escape_html(format_money(film.get('budget')))}</strong><br/>"
        f"{_anticipatory_badge(film)}"
        "</p>"
        f"{body}"
    )
