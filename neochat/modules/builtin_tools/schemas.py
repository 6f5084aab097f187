"""OpenAI function-calling schemas for the built-in tools."""

IMAGE_SIZES = ("1024x1024", "1792x1024", "1024x1792")
IMAGE_QUALITIES = ("standard", "hd")

BUILTIN_TOOL_SCHEMAS = [
    {
        "type": "function",
        "function": {
            "name": "memory_save",
            "description": (
                "Save a fact about the user to long-term memory. Use this whenever the user shares "
                "personal information, preferences, goals, or anything worth remembering across conversations."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "fact": {
                        "type": "string",
                        "description": (
                            "The fact to remember, written as a third-person statement "
                            '(e.g. "The user prefers TypeScript over JavaScript").'
                        ),
                    },
                },
                "required": ["fact"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "memory_get",
            "description": (
                "Search the user's memory for relevant stored facts. Use this to recall "
                "information about the user when context is needed."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Keywords or topic to search for in memory.",
                    },
                },
                "required": ["query"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "web_search",
            "description": (
                "Search the web for current information, news, recent events, or any factual question. "
                "Use this whenever the user asks about something that may have changed since your "
                "training data, or when you need up-to-date sources."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The search query."},
                    "max_results": {
                        "type": "integer",
                        "description": "Number of results to return (1-10). Default is 5.",
                    },
                },
                "required": ["query"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "generate_image",
            "description": (
                "Generate an image from a text prompt using DALL-E 3. Use this whenever the user "
                "asks to create, draw, generate, or visualise an image."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "prompt": {
                        "type": "string",
                        "description": "A detailed description of the image to generate.",
                    },
                    "size": {
                        "type": "string",
                        "enum": list(IMAGE_SIZES),
                        "description": "Image dimensions. Default is 1024x1024.",
                    },
                    "quality": {
                        "type": "string",
                        "enum": list(IMAGE_QUALITIES),
                        "description": "Image quality. Default is standard.",
                    },
                },
                "required": ["prompt"],
                "additionalProperties": False,
            },
        },
    },
]

BUILTIN_TOOL_NAMES = frozenset(schema["function"]["name"] for schema in BUILTIN_TOOL_SCHEMAS)
