"""Prompt templates for chunk analysis, outlines and questions."""

from langchain_core.prompts import ChatPromptTemplate

DEFAULT_ANALYSIS_INSTRUCTION = """You are a literary analysis engine. Your job is to analyze segments of a novel.
IMPORTANT: Output ALL content in Simplified Chinese (简体中文).
1. Summarize the plot.
2. Identify key characters.
3. Extract relationships between characters EXPLICITLY mentioned or implied in this segment (Subject -> Relation -> Object).
4. Determine sentiment."""

ANALYSIS_JSON_SHAPE = """{{
  "summary": "string",
  "sentimentScore": "number between -1 and 1",
  "keyCharacters": [{{ "name": "string", "role": "string", "traits": ["string"] }}],
  "relationships": [{{ "source": "string (Name A)", "target": "string (Name B)", "relation": "string (e.g. enemy)" }}],
  "plotPoints": ["string"]
}}"""

ANALYSIS_USER_WITH_CONTEXT = """PREVIOUS STORY CONTEXT (Use this to understand who characters are, but ONLY analyze the NEW TEXT):
{previous_summary}

NEW TEXT TO ANALYZE:
{text}"""

ANALYSIS_USER = """TEXT TO ANALYZE:
{text}"""

OUTLINE_SYSTEM = """You write chapter outlines for a novel.
IMPORTANT: Output ALL content in Simplified Chinese (简体中文).
Return ONLY a JSON array. Each element describes one chapter (or scene, if the
text is a single long chapter) in reading order:
[{{ "title": "string", "summary": "string (2-4 sentences)" }}]"""

OUTLINE_USER = """SECTION TITLE: {title}

TEXT:
{text}"""

QUESTION_SYSTEM = """You are a helpful literary assistant. Answer in Simplified Chinese (简体中文).
Answer based ONLY on the context provided."""

QUESTION_USER = """{previous_context}CURRENT TEXT SEGMENT:
{text}

QUESTION: {question}"""


def build_analysis_prompt(
    custom_instruction: str | None, has_previous_summary: bool
) -> ChatPromptTemplate:
    """
    Build the chunk analysis prompt.

    Args:
        custom_instruction: User supplied system instruction, replaces the default
        has_previous_summary: Whether to include the previous story context

    Returns:
        Prompt expecting ``text`` (and ``previous_summary`` when requested)
    """
    instruction = custom_instruction or DEFAULT_ANALYSIS_INSTRUCTION
    # The instruction is user text; escape braces so it is not read as variables
    instruction = instruction.replace("{", "{{").replace("}", "}}")
    system = (
        f"{instruction}\n\nOutput must be valid JSON matching this structure: "
        f"{ANALYSIS_JSON_SHAPE}"
    )
    user = ANALYSIS_USER_WITH_CONTEXT if has_previous_summary else ANALYSIS_USER
    return ChatPromptTemplate.from_messages([("system", system), ("human", user)])


def build_outline_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [("system", OUTLINE_SYSTEM), ("human", OUTLINE_USER)]
    )


def build_question_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [("system", QUESTION_SYSTEM), ("human", QUESTION_USER)]
    )
