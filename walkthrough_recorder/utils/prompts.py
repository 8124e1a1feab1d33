"""Reusable prompt templates for walkthrough generation.

Provides:
- Standardized prompts for narration scripts and step plans
- Variable substitution
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class PromptTemplate:
    """A reusable prompt template with variable substitution.

    Usage:
        template = PromptTemplate(
            name="walkthrough_script",
            template="Create a walkthrough script for: {user_prompt} on {target_app}",
            required_vars=["user_prompt", "target_app"],
        )
        prompt = template.render(user_prompt="create an invoice", target_app="Acme")
    """

    name: str
    template: str
    required_vars: list[str]
    optional_vars: list[str] = None
    description: str = ""

    def __post_init__(self):
        if self.optional_vars is None:
            self.optional_vars = []

    def render(self, **kwargs) -> str:
        """Render the template with variables.

        Raises:
            ValueError: If required variables are missing
        """
        missing = self.validate(**kwargs)
        if missing:
            raise ValueError(f"Missing required variables: {missing}")

        for var in self.optional_vars:
            if var not in kwargs:
                kwargs[var] = ""

        return self.template.format(**kwargs)

    def validate(self, **kwargs) -> list[str]:
        """Return the names of required variables that were not provided."""
        return [var for var in self.required_vars if var not in kwargs]


SCRIPT_SYSTEM_PROMPT = """You are an expert at creating clear, concise walkthrough scripts for web applications.
Create a step-by-step narration script that guides users through the requested task.
The script should be friendly, professional, and easy to follow.
Keep each step under 2 sentences and use simple language.
Respond with JSON in this format: {"script": "your script here"}"""

STEPS_SYSTEM_PROMPT = (
    "You are an expert at creating detailed step-by-step UI walkthroughs. "
    "Always respond with valid JSON."
)


PROMPTS = {
    "walkthrough_script": PromptTemplate(
        name="walkthrough_script",
        description="Narration script for a recorded walkthrough",
        template="""Create a walkthrough script for: "{user_prompt}" on {target_app}.
The script will be used as voice-over for a screen recording showing each step.""",
        required_vars=["user_prompt", "target_app"],
    ),
    "walkthrough_steps": PromptTemplate(
        name="walkthrough_steps",
        description="Structured step plan for a walkthrough description",
        template="""Based on this walkthrough description for {target_app} at {target_url}:

"{description}"

Generate a detailed step-by-step action plan. Respond with a JSON object containing a "steps" array in this exact format:
{{
    "steps": [
        {{
            "stepNumber": 1,
            "actionType": "navigate",
            "targetElement": "url",
            "instructions": "Navigate to the target page",
            "data": "{target_url}"
        }},
        {{
            "stepNumber": 2,
            "actionType": "click",
            "targetElement": "#login-button",
            "instructions": "Click the login button to access the system",
            "data": null
        }},
        {{
            "stepNumber": 3,
            "actionType": "type",
            "targetElement": "#username",
            "instructions": "Enter your username in the username field",
            "data": "[username]"
        }},
        {{
            "stepNumber": 4,
            "actionType": "tooltip",
            "targetElement": "#help-icon",
            "instructions": "Show helpful tip about this feature",
            "data": "This feature allows you to..."
        }},
        {{
            "stepNumber": 5,
            "actionType": "wait",
            "targetElement": "page",
            "instructions": "Wait for the page to load completely",
            "data": {{"duration": 2000}}
        }}
    ]
}}

Action types available: click, type, wait, navigate, tooltip
- Use CSS selectors for targetElement (e.g., "#id", ".class", "[data-testid='value']")
- Make instructions clear and user-friendly
- Include realistic wait times for page loads
- Add tooltips to explain complex features
- Break complex tasks into simple, clear steps

Provide 5-12 logical steps that would accomplish the described walkthrough.""",
        required_vars=["description", "target_app", "target_url"],
    ),
}


def get_prompt(name: str, **kwargs) -> str:
    """Render a registered prompt template.

    Raises:
        KeyError: If no template is registered under the name
    """
    template: Optional[PromptTemplate] = PROMPTS.get(name)
    if template is None:
        raise KeyError(f"Unknown prompt template: {name}")
    return template.render(**kwargs)
