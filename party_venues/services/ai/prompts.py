"""Prompt templates for venue extraction."""

from party_venues.core.enums import VenueType

PROMPT_VERSION = "1.0"

SYSTEM_PROMPT = """You extract structured information about children's party venues from website text.

CRITICAL RULES:
1. NEVER invent information that is not present or clearly implied in the text
2. Use null for any fields you cannot determine
3. Use empty arrays [] for list fields where nothing is found
4. Prices are numbers in pounds sterling, without currency symbols
5. If the page is not about a venue that hosts children's parties, return "venue": null

Output ONLY valid JSON matching the requested structure. No additional text or explanation."""


EXTRACTION_PROMPT_TEMPLATE = """Extract detailed party venue information from this website content. Focus on information parents need for children's parties.

Look for:
- Basic info: name, address, phone, email, website
- Location: full address with postcode; for London venues identify the borough (e.g. Hackney, Camden, Islington)
- Parking: free/paid, spaces, street parking notes
- Safety: staff certifications, DBS checks, first aid
- Capacity: max children, max adults, age ranges
- Party packages:
  - Name, price structure (base price for X children plus additional child cost)
  - Exact duration in minutes
  - What's included (activities, food items)
  - What costs extra
  - Deposit and how far in advance to book
- Food: provided or bring-your-own, allergy handling
- Parent info: must adults stay?
- Private party room available?

Rate your overall confidence from 0 to 1 in "confidence_score". Lower it when information is ambiguous, missing or inferred, and explain in "extraction_notes".

Return the response in EXACTLY this JSON structure:

{{
  "venue": {{
    "name": "string",
    "description": "string or null",
    "address_line_1": "string",
    "address_line_2": "string or null",
    "city": "string",
    "borough": "string or null",
    "postcode": "string",
    "phone": "string or null",
    "email": "string or null",
    "website": "string or null",
    "parking_info": "string or null",
    "parking_free": boolean or null,
    "max_children": number or null,
    "max_adults": number or null,
    "min_age": number or null,
    "max_age": number or null,
    "venue_type": [{venue_types}],
    "safety_certifications": ["string"],
    "staff_dbs_checked": boolean or null,
    "first_aid_trained": boolean or null,
    "food_provided": boolean or null,
    "outside_food_allowed": boolean or null,
    "allergy_accommodations": boolean or null,
    "allergy_info": "string or null",
    "private_party_room": boolean or null,
    "adults_must_stay": boolean or null
  }},
  "packages": [
    {{
      "name": "string",
      "description": "string",
      "base_price": number or null,
      "base_includes_children": number or null,
      "additional_child_price": number or null,
      "duration_minutes": number or null,
      "activities_included": ["string"],
      "food_included": ["string"],
      "additional_costs": ["string"],
      "deposit_required": number or null,
      "advance_booking_days": number or null
    }}
  ],
  "confidence_score": number between 0 and 1,
  "extraction_notes": "string"
}}

Source URL: {source_url}

Website content:
{content}"""


def build_extraction_prompt(content: str, source_url: str | None = None) -> str:
    """
    Build the extraction prompt for cleaned page text.

    Args:
        content: Cleaned, truncated page text.
        source_url: The page the text came from, if known.

    Returns:
        The formatted prompt string.
    """
    venue_types = ", ".join(f'"{t.value}"' for t in VenueType)
    return EXTRACTION_PROMPT_TEMPLATE.format(
        venue_types=venue_types,
        source_url=source_url or "unknown",
        content=content,
    )
