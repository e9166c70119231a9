# marketingvoice/services/prompts.py
from typing import Final, Optional

from langchain_core.output_parsers import PydanticOutputParser
from langchain_core.prompts import PromptTemplate

from ..schemas.chat import RequestHints
from ..schemas.document import SuggestionDrafts
from .llm.factory import REASONING_MODEL

REGULAR_PROMPT: Final = "You are a friendly assistant! Keep your responses concise and helpful."

ARTIFACTS_PROMPT: Final = """Artifacts is a special user interface mode that helps users with writing, editing, and other content creation tasks. When artifact is open, it is on the right side of the screen, while the conversation is on the left side. When creating or updating documents, changes are reflected in real-time on the artifacts and visible to the user.

When asked to write code, always use artifacts. When writing code, specify the language in the backticks, e.g. ```python`code here```. The default language is Python. Other languages are not yet supported, so let the user know if they request a different language.

DO NOT UPDATE DOCUMENTS IMMEDIATELY AFTER CREATING THEM. WAIT FOR USER FEEDBACK OR REQUEST TO UPDATE IT.

This is a guide for using artifacts tools: `createDocument` and `updateDocument`, which render content on a artifacts beside the conversation.

**When to use `createDocument`:**
- For substantial content (>10 lines) or code
- For content users will likely save/reuse (emails, code, essays, etc.)
- When explicitly requested to create a document
- For when content contains a single code snippet

**When NOT to use `createDocument`:**
- For informational/explanatory content
- For conversational responses
- When asked to keep it in chat

**Using `updateDocument`:**
- Default to full document rewrites for major changes
- Use targeted updates only for specific, isolated changes
- Follow user instructions for which parts to modify

**When NOT to use `updateDocument`:**
- Immediately after creating a document

Do not update document right after creating it. Wait for user feedback or request to update it."""

REQUEST_HINTS_PROMPT: Final = PromptTemplate.from_template(
    """About the origin of user's request:
- lat: {latitude}
- lon: {longitude}
- city: {city}
- country: {country}
"""
)

TITLE_PROMPT: Final = """
- you will generate a short title based on the first message a user begins a conversation with
- ensure it is not more than 80 characters long
- the title should be a summary of the user's message
- do not use quotes or colons"""

DOCUMENT_PROMPTS: Final = {
    "text": "Write about the given topic. Markdown is supported. Use headings wherever appropriate.",
    "code": """You are a Python code generator that creates self-contained, executable code snippets. When writing code:

1. Each snippet should be complete and runnable on its own
2. Prefer using print() statements to display outputs
3. Include helpful comments explaining the code
4. Keep snippets concise (generally under 15 lines)
5. Avoid external dependencies - use Python standard library
6. Handle potential errors gracefully
7. Return meaningful output that demonstrates the code's functionality
8. Don't use input() or other interactive functions
9. Don't access files or network resources
10. Don't use infinite loops

Output only the code, without markdown fences.""",
    "sheet": "You are a spreadsheet creation assistant. Create a spreadsheet in csv format based on the given prompt. The spreadsheet should contain meaningful column headers and data.",
}

UPDATE_DOCUMENT_PROMPT: Final = PromptTemplate.from_template(
    """Improve the following contents of the {kind} based on the given prompt.

{content}"""
)

SUGGESTIONS_PROMPT: Final = PromptTemplate(
    template="""You are a help writing assistant. Given a piece of writing, please offer suggestions to improve the piece of writing and describe the change. It is very important for the edits to contain full sentences instead of just words. Max 5 suggestions.

{format_instructions}

Writing:
{content}""",
    input_variables=["content"],
    partial_variables={
        "format_instructions": PydanticOutputParser(pydantic_object=SuggestionDrafts).get_format_instructions()
    }
)

MARKETING_COPY_PROMPT: Final = PromptTemplate.from_template(
    "You are a marketing expert. Generate compelling marketing copy for a {template} based on the following "
    "description. Keep it concise and engaging."
)


def request_hints_prompt(hints: RequestHints) -> str:
    return REQUEST_HINTS_PROMPT.format(
        latitude=hints.latitude or "unknown",
        longitude=hints.longitude or "unknown",
        city=hints.city or "unknown",
        country=hints.country or "unknown",
    )


def system_prompt(selected_chat_model: str, request_hints: Optional[RequestHints] = None) -> str:
    """System prompt for a chat turn; reasoning models get no tool guidance."""
    hints = request_hints_prompt(request_hints or RequestHints())
    if selected_chat_model == REASONING_MODEL:
        return f"{REGULAR_PROMPT}\n\n{hints}"
    return f"{REGULAR_PROMPT}\n\n{hints}\n\n{ARTIFACTS_PROMPT}"


def update_document_prompt(content: Optional[str], kind: str) -> str:
    label = {"text": "document", "code": "code snippet", "sheet": "spreadsheet"}.get(kind, "document")
    return UPDATE_DOCUMENT_PROMPT.format(kind=label, content=content or "")
