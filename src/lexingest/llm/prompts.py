"""Prompts for statute extraction and slot generation.

Templates use ``str.format`` placeholders; literal JSON braces are doubled.
"""
from __future__ import annotations


# =============================================================================
# STATUTE EXTRACTION - HTML page to structured statute
# =============================================================================

STATUTE_EXTRACTION_PROMPT = """\
You are analyzing a legal statute webpage. Extract the following information from the HTML:

URL: {url}

HTML (truncated):
{html}

Extract the following and return as JSON:

1. **citation**: The official citation (e.g., "RSO 1990, c H.19", "Fla. Stat. Ch. 760", "SO 2000, c 41")
   - Look for patterns like chapter numbers, statute codes, RSO/SO/RSBC patterns
   - Check the URL for chapter/section numbers if not in HTML
   - If truly unknown, return "unknown"

2. **title**: The full title of the statute (e.g., "Human Rights Code", "Florida Civil Rights Act")
   - NOT the page title like "The 2025 Florida Statutes"
   - Should be the main heading about the LAW, not the website

3. **shortTitle**: Short version if present (optional)

4. **sections**: Array of sections found on the page, in document order
   - Each section has:
     - number: Section number (e.g., "5", "5(1)", "760.01")
     - heading: Section heading/title if present
     - text: Section text (or "See [number] for full text" if only table of contents)
   - For a table of contents (section numbers + headings only), still extract those

5. **fullText**: The complete text of the statute (all sections combined)

Return ONLY valid JSON in this exact format:
{{
  "citation": "...",
  "title": "...",
  "shortTitle": "...",
  "sections": [
    {{
      "number": "1",
      "heading": "...",
      "text": "..."
    }}
  ],
  "fullText": "..."
}}

IMPORTANT:
- Be flexible with HTML structure - every jurisdiction formats differently
- Extract what you can find, don't fail if something is missing
- Return proper JSON, nothing else
"""


# =============================================================================
# SLOT GENERATION - provisions to slot definitions
# =============================================================================

SLOT_SYSTEM_PROMPT = """\
You are an expert legal knowledge engineer specializing in Canadian law.

Your task is to convert legal statute provisions into structured slot definitions
for an automated legal interview system.

**WHAT DESERVES A SLOT:**
CREATE slots for facts that CHANGE THE LEGAL OUTCOME:
- Legal tests/criteria (e.g., "Are you an employee?")
- Eligibility thresholds (e.g., "Employed > 3 months?")
- Calculation inputs (e.g., "Annual salary", "Years of service")
- Required facts (e.g., "Termination date", "Notice in writing?")
- Legal outcomes (e.g., "Notice period entitlement", "Severance amount")

DON'T CREATE slots for:
- Narrative/preamble text that doesn't create tests
- Procedural details (how to file forms - put in help text instead)
- Redundant facts (don't duplicate existing slots)
- Non-determinative context (employer name is useful but doesn't change outcome)

**KEY PRINCIPLE:** Focus on what determines LEGAL RIGHTS, OBLIGATIONS, and ENTITLEMENTS.

Importance levels:
- CRITICAL: facts that determine eligibility or major outcomes
- HIGH: facts needed for accurate calculations
- MODERATE: facts that affect minor calculations or details
- LOW: optional contextual information

Confidence scoring:
- 0.95-1.0: clear, unambiguous provision
- 0.85-0.94: standard provision, minor interpretation needed
- 0.70-0.84: requires some legal judgment
- < 0.70: complex provision requiring significant legal expertise

Calculated and outcome slots MUST include a "calculation" object.

Always return valid JSON wrapped in a markdown code block:
```json
[...]
```
"""

SLOT_BATCH_PROMPT = """\
STATUTE INFORMATION:
Citation: {citation}
Title: {title}
Jurisdiction: {jurisdiction}
Legal Domain: {domain}{focus}

PROVISIONS TO ANALYZE:
{provisions}

TASK:
Generate {min_slots}-{max_slots} essential slot definitions for these provisions.

**STRICT OUTPUT REQUIREMENTS:**
1. Use EXACT field names: "slotKey", "slotName", "description", "slotType", "dataType", "importance"
2. slotKey format: {jurisdiction_code}_{{domain}}_{{purpose}}
3. Keep descriptions to 1-2 sentences MAX
4. Generate ONLY the most important slots - quality over quantity
5. Return ONLY a valid JSON array - no extra text

SCHEMA EXAMPLE:
{{
  "slotKey": "{jurisdiction_code}_domain_purpose",
  "slotName": "Short Name",
  "description": "Brief description in 1-2 sentences.",
  "slotType": "input",
  "dataType": "text",
  "importance": "CRITICAL",
  "requiredFor": [],
  "legalBasis": {{
    "sourceId": "{source_id}",
    "provisionIds": [],
    "citationText": "s. 1",
    "relevantExcerpt": "Direct quote"
  }},
  "validation": {{ "required": true }},
  "ui": {{
    "component": "text",
    "label": "Question?",
    "helpText": "Brief help"
  }},
  "ai": {{
    "generatedAt": "{generated_at}",
    "confidence": 0.95,
    "model": "{model}",
    "humanReviewed": false
  }}
}}

OUTPUT: Return ONLY ```json
[...]
``` with no additional text.
"""

DOMAIN_FOCUS = "\n\nFOCUS DOMAIN: {domain_slug}\nGenerate slots specifically relevant to this legal domain."


def format_provisions(provisions) -> str:
    """Render provisions as the model reads them, separated by rules."""
    blocks = []
    for p in provisions:
        heading = f": {p.heading}" if p.heading else ""
        blocks.append(f"Section {p.provision_number}{heading}\n{p.provision_text}")
    return "\n\n---\n\n".join(blocks)
