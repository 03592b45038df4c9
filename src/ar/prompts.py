# src/ar/prompts.py
"""
Prompt payloads for the text generator.

The generator only narrates: every number and file name in a prompt comes from
the deterministic stages (detect / diffing / overview / render), so the model
never has to infer what changed.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ar.detect import ChangeSet
from ar.overview import RepositoryOverview
from ar.render import (
    render_change_details,
    render_change_summary,
    render_counts,
    render_folder_listing,
    render_overview_stats,
)

# Policy layer shared by every review prompt.
# "Return ONLY valid JSON" lets the caller validate the answer against GeneratedReport.
SYSTEM_PROMPT = """You are a personal knowledge-management assistant writing activity reviews of a note vault.
Rules:
- Base every statement on the change data provided. Do not invent files, topics or numbers.
- Write in clear, concise Markdown suitable for a personal journal.
- Keep the section headings of the requested template.
Return ONLY a JSON object: {"text": "<markdown report>"}. No extra text.
"""


def build_daily_prompt(
    changes: ChangeSet,
    date_key: str,
    max_files_for_detail: Optional[int] = None,
) -> str:
    details = render_change_details(changes, max_files=max_files_for_detail)
    return f"""Write the daily review for {date_key} based on the following document changes.

CHANGE SUMMARY:
{render_change_summary(changes)}

CHANGE DETAILS:
{details or "(no line-level details)"}

TEMPLATE:
# Daily Review - {date_key}

## Overview
{render_counts(changes)}

## What I worked on
One sentence per item, derived from the changes.

## Key takeaways
Knowledge, insights or lessons visible in the changes.

## Plan for tomorrow
Next steps suggested by the work in progress.

## Change details
{details or "(none)"}
"""


def build_weekly_prompt(dailies: Sequence[Tuple[str, str]], week_key: str) -> str:
    reviews: List[str] = [f"### {date}\n{content.strip()}" for date, content in dailies]
    reviews_text = "\n\n".join(reviews)
    return f"""Write the weekly review for {week_key} based on the following daily reviews.

DAILY REVIEWS:
{reviews_text}

TEMPLATE:
# Weekly Review - {week_key}

## Overview
- Days with reviews: {len(dailies)}
- Main achievements:
- Challenges:

## This week's work
Summarize the main work of the week from the daily reviews.

## Key takeaways

## Plan for next week
"""


def build_overview_prompt(overview: RepositoryOverview, date_key: str) -> str:
    return f"""This is the first run of activity reviews for this vault. Write a repository overview report.

REPOSITORY STATISTICS:
{render_overview_stats(overview)}
- Size band: {overview.size_band}

FOLDER STRUCTURE:
{render_folder_listing(overview) or "(empty vault)"}

TEMPLATE:
# Repository Overview - {date_key}

## Scale
Assess the vault size ({overview.size_band}) and what it implies.

## Main content areas
Infer the main areas from the folder structure.

## Organization suggestions
Point out folders or content that might need tidying.

## Knowledge-management suggestions
"""
