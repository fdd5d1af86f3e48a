"""
Prompts for element location and component generation.
"""

from typing import Optional

LOCATE_SYSTEM = """You are an expert at analyzing accessibility trees and locating UI elements.
Your task is to find the element that best matches a natural language description.

Rules:
1. Return ONLY the element reference (e.g., @e5 or @e0.1.2)
2. If multiple elements match, pick the most specific/relevant one
3. Include a confidence score (0-1) for your match
4. Briefly explain your reasoning

Format your response as:
@eX.X.X
Confidence: 0.XX
Reasoning: <brief explanation>"""

TRANSFORM_SYSTEM = """You are an expert frontend developer who converts HTML+CSS into clean, reusable components.

Core principles:
1. Create idiomatic code for the target framework
2. Extract dynamic content as props with sensible defaults
3. Use TypeScript for type safety
4. Make components responsive by default
5. Use semantic HTML elements and keep them accessible

Output format:
1. Start with the props interface (for TypeScript frameworks)
2. Then the component code in one fenced code block
3. If styles live in a separate file, put them in a ```css block
4. Do NOT include import statements unless framework-specific"""

FRAMEWORK_GUIDES = {
    "react": """React Guidelines:
- Use functional components with hooks
- Use TypeScript interfaces for props
- Prefer composition over inheritance
- Event handlers should be typed properly""",
    "vue": """Vue 3 Guidelines:
- Use Composition API with <script setup>
- Define props with defineProps<T>()
- Emit events with defineEmits<T>()
- Use computed() for derived state""",
    "svelte": """Svelte Guidelines:
- Use TypeScript with <script lang="ts">
- Export props with export let
- Prefer slots for composition
- Use on:event for event forwarding""",
    "html": """HTML Guidelines:
- Use semantic HTML5 elements
- Include an inline <style> block
- Include basic interactivity with vanilla JS
- Keep the component self-contained""",
}

STYLING_GUIDES = {
    "tailwind": """Tailwind CSS Guidelines:
- Use Tailwind utility classes directly in markup
- Prefer responsive utilities (sm:, md:, lg:) over media queries
- Use arbitrary values [value] sparingly
- No separate CSS file needed""",
    "css-modules": """CSS Modules Guidelines:
- Import styles as 'styles' object
- Use camelCase for class names
- Apply with className={styles.className}
- Provide the CSS separately in a ```css block""",
    "vanilla": """Vanilla CSS Guidelines:
- Use BEM naming convention (.block__element--modifier)
- Scope styles with a unique class prefix
- Use CSS custom properties for theming
- Provide the CSS separately in a ```css block""",
    "inline": """Inline Styles Guidelines:
- Use style objects in JavaScript
- Define reusable style constants
- Use camelCase property names
- All styles should be in the component file""",
}


def build_locate_prompt(tree_text: str, query: str) -> str:
    return f"""Given this accessibility tree:

{tree_text}

Find the element that matches this description:
"{query}"

Return the element reference, confidence score, and brief reasoning."""


def build_transform_prompt(
    html: str,
    css: str,
    framework: str,
    styling: str,
    component_name: str,
    instructions: Optional[str] = None,
) -> str:
    return f"""Convert this extracted HTML and CSS into a {framework} component with {styling} styling.

Component name: {component_name}

HTML:
```html
{html}
```

CSS:
```css
{css}
```

Additional instructions: {instructions or "None"}

Generate a clean, reusable component with:
- Props for dynamic content (strings, arrays, handlers)
- Responsive design
- Proper TypeScript types
- {styling} styling approach"""


def transform_system_prompt(framework: str, styling: str) -> str:
    return "\n\n".join([
        TRANSFORM_SYSTEM,
        FRAMEWORK_GUIDES.get(framework, ""),
        STYLING_GUIDES.get(styling, ""),
    ])


def truncate_for_preview(text: str, max_length: int = 200) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
