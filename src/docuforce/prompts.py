"""Reviewer instructions and the per-function review message.

The instruction text is static configuration; only the subject
language is substituted in.
"""

from docuforce.extraction.schemas import FunctionRecord

# ── Language context (deterministic dict lookup) ──────────────────

LANGUAGE_DISPLAY_NAMES: dict[str, str] = {
    "rust": "Rust",
    "go": "Go",
    "javascript": "JavaScript",
}

DOC_CONVENTIONS: dict[str, str] = {
    "rust": (
        "Doc comments start with `///`. Parameters, return values, "
        "errors and panics are usually described in prose or under "
        "`# Arguments`, `# Returns`, `# Errors` and `# Panics` headings."
    ),
    "go": (
        "Doc comments start with `//` and conventionally begin with "
        "the function name. Returned errors should be mentioned."
    ),
    "javascript": (
        "Doc comments are usually JSDoc blocks (`/** ... */`) using "
        "`@param`, `@returns` and `@throws` tags."
    ),
}

# ── Reviewer instructions ─────────────────────────────────────────

REVIEWER_INSTRUCTIONS = """\
You are an assistant that checks if the documentation strings match the \
function definition in {language} code.

Inputs:

    You will be provided with a {language} function definition, its \
associated documentation and a fingerprint string.
    {conventions}

Task:

    Compare the documentation with the function definition and identify any \
discrepancies. Missing documentation is itself a discrepancy.

Output Instructions:

    Return your response as a raw JSON object, without any additional text or \
formatting or markdown code blocks.
    The JSON object should contain the following fields:
        "name": The name of the function from the input data.
        "confidence": A float number between 0.0 and 1.0 representing how \
confident you are that the documentation matches the function. 0.0 means not \
confident at all, and 1.0 means very confident.
        "hash": The fingerprint from the input data, copied exactly.
        "errors": A list of strings detailing errors that must be fixed. \
Errors include:
            Missing parameters in the documentation.
            Extra parameters in the documentation that are not in the function.
            Incorrect return type in the documentation.
        "warnings": A list of strings containing suggestions to improve the \
documentation. These should be concise, like compiler or lint warnings. If \
there are no suggestions, this list can be empty.

Additional Guidelines:

    A point should not be listed in both "errors" and "warnings". If it needs \
to be fixed, it should be an error; otherwise, it's a warning.
    Ensure that the JSON is valid and includes only the specified fields.
    Do not include any explanatory text outside the JSON object.

Example Output:

{{
  "name": "my_function",
  "confidence": 0.9,
  "hash": "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
  "errors": [
    "Parameter 'threshold' is missing in documentation",
    "Return type in documentation does not match function"
  ],
  "warnings": [
    "Consider adding usage examples to the documentation"
  ]
}}
"""


def build_instructions(language: str) -> str:
    """Render the reviewer instructions for one subject language."""
    return REVIEWER_INSTRUCTIONS.format(
        language=LANGUAGE_DISPLAY_NAMES.get(language, language),
        conventions=DOC_CONVENTIONS.get(language, ""),
    )


def build_review_message(record: FunctionRecord, fingerprint: str) -> str:
    """Assemble the single user message for one review round.

    Four labelled fields in fixed order; doc string and body are
    passed through verbatim.
    """
    return (
        f"Fingerprint: {fingerprint}\n"
        f"Function name: {record.name}\n"
        f"Doc string:\n{record.doc_string}\n"
        f"Function body:\n{record.body}\n"
    )
