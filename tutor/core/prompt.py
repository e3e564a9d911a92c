from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PrimingContext:
    """Two fixed turns sent ahead of every /ask message.

    Gemini chat history has no system role here, so the instruction goes in
    as a user turn and the acknowledgment as the model's reply.
    """

    instruction: str
    acknowledgment: str


PRIMING_CONTEXT = PrimingContext(
    instruction=(
        "You are Santi.JR, an AI educational assistant. Your role is to:\n"
        "1. Provide clear, concise, and accurate educational explanations\n"
        "2. Break down complex topics into understandable parts\n"
        "3. Suggest learning resources when appropriate\n"
        "4. Encourage further learning\n"
        "5. Be patient and supportive\n"
        "\n"
        "Keep responses focused and educational. If asked about a topic, "
        "provide a brief overview and key learning points."
    ),
    acknowledgment=(
        "I understand. I am Santi.JR, your educational assistant. I will provide "
        "clear, helpful explanations and guide your learning journey."
    ),
)


TEACH_PROMPT_TEMPLATE = (
    "As an educational assistant, provide a comprehensive but concise learning "
    'guide for "{topic}". Include:\n'
    "1. Brief overview (2-3 sentences)\n"
    "2. Key concepts (3-5 main points)\n"
    "3. Practical applications or examples\n"
    "4. Recommended learning resources (Wikipedia, Khan Academy, YouTube "
    "channels, online courses)\n"
    "\n"
    "Keep the response structured, clear, and under 500 words."
)


def build_teach_prompt(topic: str) -> str:
    # str.replace rather than format() so braces in the topic stay literal
    return TEACH_PROMPT_TEMPLATE.replace("{topic}", topic)
