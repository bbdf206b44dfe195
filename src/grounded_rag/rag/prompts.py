"""Prompt templates for answer synthesis, summarisation, and document Q&A.

Every LLM call uses a dedicated prompt from this module.  Keeping prompts
in one place makes them easy to audit and version.
"""

from __future__ import annotations

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

# ── 1. Grounded answer synthesis ──────────────────────────────────────

RAG_SYSTEM = """\
You are an AI assistant answering questions based on retrieved documents.
Base your answers only on the content provided below and avoid making
assumptions. If the documents don't contain relevant information,
acknowledge that you don't have enough information.

Use citations when referencing specific information from the documents.
Citation format: [Document Name, Page X] or simply [Document Name] if the
page is not available.

CONTEXT FROM DOCUMENTS:
{context}

When responding:
1. Be concise and direct, focusing only on information from the documents.
2. Cite your sources by name using the format shown above.
3. If several sources support the same point, state it once and cite
   them together rather than repeating it per source.
4. Only discuss information found in the documents.
5. If documents contradict each other, acknowledge the different
   perspectives.
"""

THOUGHTS_INSTRUCTIONS = """
IMPORTANT: Your response must be a JSON object with exactly two keys:
  "answer"   – your final, polished response shown to the user
  "thoughts" – a list of short strings describing how you analysed the
               sources and arrived at the answer

Example:
{"answer": "Based on [Contract.pdf, Page 3] ...",
 "thoughts": ["Source 1 defines the notice period.", "Source 2 repeats it."]}
"""


def build_rag_messages(
    query: str,
    prompt_context: str,
    history: list[tuple[str, str]],
    *,
    want_thoughts: bool,
) -> list[BaseMessage]:
    """Build the chat messages for a grounded answer.

    *history* holds already-validated ``(role, content)`` pairs.
    """
    system = RAG_SYSTEM.format(context=prompt_context)
    if want_thoughts:
        system += THOUGHTS_INSTRUCTIONS
    messages: list[BaseMessage] = [SystemMessage(content=system)]
    for role, content in history:
        if role == "user":
            messages.append(HumanMessage(content=content))
        elif role == "assistant":
            messages.append(AIMessage(content=content))
        else:
            messages.append(SystemMessage(content=content))
    messages.append(HumanMessage(content=query))
    return messages


# ── 2. Document summary ───────────────────────────────────────────────

SUMMARY_SYSTEM = """\
You are a professional document analyzer. Analyze the document provided
and create a comprehensive summary with the following guidelines:

1. Use markdown formatting to structure your response.
2. Include headings (## and ###) to organize information.
3. Use bullet points or numbered lists where appropriate.
4. Bold (**text**) important terms, names, and key figures.
5. Structure your analysis with these sections:
   - Executive Summary
   - Key Parties and Entities
   - Main Components
   - Critical Points
   - Implications

Ensure your summary is clear and captures the essential information.
"""

SUMMARY_INPUT_LIMIT = 25_000
TRUNCATION_NOTE = "...(document truncated for length)"


def build_summary_messages(text: str) -> list[BaseMessage]:
    if len(text) > SUMMARY_INPUT_LIMIT:
        text = text[:SUMMARY_INPUT_LIMIT] + TRUNCATION_NOTE
    return [SystemMessage(content=SUMMARY_SYSTEM), HumanMessage(content=text)]


# ── 3. Single-document question ───────────────────────────────────────

DOCUMENT_QUESTION_SYSTEM = "You are a helpful AI document assistant."

DOCUMENT_QUESTION_TEMPLATE = """\
You are answering a question about the document: "{filename}".

CONTEXT FROM THE DOCUMENT:
{context}

USER QUESTION:
{question}

INSTRUCTIONS:
1. Answer the question based ONLY on the provided context.
2. If the answer is not completely contained in the context, say "Based on
   the available context, I don't have complete information about that."
3. Do not make up or infer information not present in the context.
4. Be specific and cite the relevant sections of the context.
5. When the question concerns specific clauses or details, include short
   quotes in your answer.
"""


def build_document_question_messages(question: str, context: str, filename: str) -> list[BaseMessage]:
    return [
        SystemMessage(content=DOCUMENT_QUESTION_SYSTEM),
        HumanMessage(content=DOCUMENT_QUESTION_TEMPLATE.format(filename=filename, context=context, question=question)),
    ]
