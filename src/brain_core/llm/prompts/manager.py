"""Prompt templates for the query pipeline and the conversation summarizer."""

from pathlib import Path
from string import Template
from typing import Dict, Optional

from loguru import logger


_ASSISTANT_RULES = """3. Format your response in markdown for readability
4. Keep responses clear and concise
5. Do not make up information that's not in the provided context"""


class PromptManager:
    """Manager for prompt templates.

    Built-in templates can be overridden by ``<name>.txt`` files in
    ``templates_dir`` or at runtime with :meth:`add_template`.
    """

    def __init__(self, templates_dir: Optional[str] = None):
        """Initialize prompt manager.

        Args:
            templates_dir: Optional directory with template overrides
        """
        self.templates_dir = Path(templates_dir) if templates_dir else None
        self._template_cache: Dict[str, str] = {}
        self._initialize_builtin_templates()

    def _initialize_builtin_templates(self):
        """Initialize built-in prompt templates."""
        self._builtin_templates = {
            "system_notes_only": f"""You are a helpful assistant integrated with a personal knowledge base.
Your task is to provide accurate, helpful responses based on the user's notes.

Guidelines:
1. Use only the provided context to answer questions
2. If the context doesn't contain enough information, acknowledge this limitation
{_ASSISTANT_RULES}
6. When appropriate, mention related topics from the notes that the user might want to explore further""",

            "system_notes_with_external": f"""You are a helpful assistant integrated with a personal knowledge base and external knowledge sources.
Your task is to provide accurate, helpful responses based on the user's notes and external information.

Guidelines:
1. Use the provided context to answer questions, balancing personal notes and external information
2. Prioritize personal notes when they contain relevant information
{_ASSISTANT_RULES}
6. Cite external sources when used in your response
7. Indicate when information comes from an external source versus personal notes
8. If information from different sources conflicts, acknowledge this and explain the differences""",

            "system_profile_only": f"""You are a helpful assistant integrated with a personal knowledge base and detailed profile information.
Your task is to provide accurate, helpful responses based on the user's profile information and relevant personal notes.

Guidelines:
1. For profile-related questions, prioritize the profile information section in the context
2. Address the user directly in the second person
{_ASSISTANT_RULES}
6. Reference specific parts of the profile when relevant (e.g., work experiences, skills)
7. Be conversational but professional when discussing personal information""",

            "system_profile_with_external": f"""You are a helpful assistant integrated with a personal knowledge base, detailed profile information, and external knowledge sources.
Your task is to provide accurate, helpful responses based on the user's profile, personal notes, and external information.

Guidelines:
1. For profile-related questions, prioritize the profile information section in the context
2. Address the user directly in the second person
{_ASSISTANT_RULES}
6. Cite external sources when used in your response
7. Indicate when information comes from an external source versus personal notes""",

            "system_high_profile_relevance": f"""You are a helpful assistant integrated with a personal knowledge base and profile information.
Your task is to provide accurate, insightful responses that connect the user's notes with their background and expertise.

Guidelines:
1. Use the provided context to answer questions, with special attention to the user's professional background
2. Connect ideas from the notes with the user's expertise and experience when relevant
{_ASSISTANT_RULES}
6. Feel free to suggest applications or connections to the user's work or projects$external_guidelines""",

            "system_medium_profile_relevance": f"""You are a helpful assistant integrated with a personal knowledge base and profile information.
Your task is to provide accurate, helpful responses based primarily on the user's notes, with background context from their profile.

Guidelines:
1. Use primarily the notes in the provided context to answer questions
2. When relevant, incorporate background knowledge about the user's expertise
{_ASSISTANT_RULES}
6. When appropriate, mention how the topic might relate to the user's background or interests$external_guidelines""",

            "structured_output": """

Respond with a single JSON object and nothing else. The object must validate against this JSON schema:
$schema""",

            "conversation_summary_system": """You are a specialized assistant that creates concise, informative summaries of conversations.
Extract the key points, main topics, and important details from a conversation between a user and an assistant.
Your summary should:
- Be under 250 words
- Highlight the main topics discussed
- Note any important decisions, information, or action items
- Maintain an objective, neutral tone

Keep a third-person perspective and do not add your own commentary.""",

            "conversation_summary": """Please summarize the following conversation, focusing on the key topics and important details:

$conversation

Summary:""",
        }

    def get_prompt(self, template_name: str, **kwargs) -> str:
        """Get a formatted prompt from a template.

        Args:
            template_name: Name of the template
            **kwargs: Variables to substitute in the template

        Returns:
            Formatted prompt string

        Raises:
            ValueError: If the template does not exist
        """
        template = Template(self._get_template_content(template_name))
        safe_kwargs = {
            key: str(value) if value is not None else ""
            for key, value in kwargs.items()
        }
        return template.safe_substitute(**safe_kwargs)

    def _get_template_content(self, template_name: str) -> str:
        if template_name in self._template_cache:
            return self._template_cache[template_name]

        if self.templates_dir is not None:
            template_file = self.templates_dir / f"{template_name}.txt"
            if template_file.exists():
                try:
                    content = template_file.read_text(encoding="utf-8")
                    self._template_cache[template_name] = content
                    return content
                except OSError as e:
                    logger.warning(f"PromptManager: Error reading template file '{template_file}': {e}")

        if template_name in self._builtin_templates:
            content = self._builtin_templates[template_name]
            self._template_cache[template_name] = content
            return content

        raise ValueError(f"Template '{template_name}' not found")

    def add_template(self, name: str, content: str):
        """Add or override a template for this manager."""
        self._template_cache[name] = content
        logger.debug(f"PromptManager: Registered template '{name}'")

    def list_templates(self) -> Dict[str, str]:
        """List available templates with their source."""
        templates = {name: "built-in" for name in self._builtin_templates}
        if self.templates_dir is not None and self.templates_dir.exists():
            for template_file in self.templates_dir.glob("*.txt"):
                templates[template_file.stem] = "file"
        for name in self._template_cache:
            templates.setdefault(name, "runtime")
        return templates
