JSON_PATCH_TOOL_DESCRIPTION = (
    "Suggest RFC 6902 JSON Patch operations to the user for a JSON file currently open in the editor. "
    "Only include operations for a single file per tool call. Make sure to give valid Path."
)

JSON_PATCH_INSTRUCTIONS = r"""
### For JSON Modifications (suggest_json_patch)
Use RFC 6902 JSON Patch operations:
- **add**: Insert new properties or array elements
- **remove**: Delete existing properties or elements
- **replace**: Update existing values
- **move**: Relocate properties or elements
- **copy**: Duplicate properties or elements
"""

JSON_PATH_TOOL_DESCRIPTION = (
    "Execute JSONPath queries on JSON files. MANDATORY: Always use selective, targeted queries only. "
    "Never use broad or recursive patterns."
)

JSON_PATH_INSTRUCTIONS = r"""
### For JSON Discovery (query_json_path)
**MANDATORY: Use only selective, targeted queries.**

**GENERAL INSTRUCTION:**
You MUST use only and exclusively selective queries. Never use broad, recursive, or wildcard patterns that could return large datasets.

**CRITICAL SAFETY RULES:**
- ALWAYS filter results with conditions [?(@.property=='value')]
- Use include_values: false for discovery, true only for small, specific data sets
- Combine multiple targeted queries instead of using broad patterns
- Only query for exactly what you need - no exploratory or "just in case" queries
"""

JSON_REPAIR_TOOL_DESCRIPTION = (
    "Repair invalid JSON files using AI-powered analysis with knowledge base context. Generates specific edits "
    "to fix syntax errors while preserving data structure. Applies fixes automatically and validates results. "
    "Use this when JSON validation fails."
)

JSON_REPAIR_INSTRUCTIONS = r"""
### JSON Repair Tool (repair_json)
**Purpose**: Fix invalid JSON files using AI-powered analysis and repairs with knowledge base context.

**Workflow**:
1. Validate JSON and identify syntax errors
2. Use AI to analyze errors with knowledge base context
3. Generate specific, targeted edits to fix syntax issues
4. Apply AI edits automatically and validate result
5. Return success/failure with validation results

**When to Use**:
- When JSON files have syntax errors
- Before other JSON tools (JSONPath, JSONPatch) if validation fails
- When user reports JSON parsing issues
"""

JSON_REPAIR_SYSTEM_PROMPT = (
    "You are a JSON repair specialist. Follow the exact format requirements and use any provided "
    "knowledge base context for better understanding."
)

KNOWLEDGE_BASE_SECTION = r"""
<knowledge_base>
{knowledge_base}

Use this knowledge base to understand the context and expected structure of the JSON being repaired. This may contain form schema information, validation rules, or other relevant context.
</knowledge_base>
"""

JSON_REPAIR_PROMPT = r"""You MUST respond with a series of edits to fix JSON syntax errors, using the following format:

```
<edits>

<old_text>
OLD TEXT 1 HERE
</old_text>
<new_text>
NEW TEXT 1 HERE
</new_text>

<old_text>
OLD TEXT 2 HERE
</old_text>
<new_text>
NEW TEXT 2 HERE
</new_text>

</edits>
```

# JSON Repair Instructions

- Use `<old_text>` and `<new_text>` tags to replace content
- `<old_text>` must exactly match existing file content, including indentation
- `<old_text>` must come from the actual file, not an outline
- `<old_text>` cannot be empty
- Be minimal with replacements:
  - For unique lines, include only those lines
  - For non-unique lines, include enough context to identify them
- Do not escape quotes, newlines, or other characters within tags
- For multiple occurrences, repeat the same tag pair for each instance
- Edits are sequential - each assumes previous edits are already applied
- Only fix JSON syntax errors - do not modify the data structure
- Always close all tags properly
- Use knowledge base context to understand expected structure and values

<example>
<edits>

<old_text>
{
  "name": "John"
  "age": 30
}
</old_text>
<new_text>
{
  "name": "John",
  "age": 30
}
</new_text>

</edits>
</example>

{knowledge_base_section}

<json_content>
{content}
</json_content>

<error_description>
JSON Parse Error: {error}

Fix only the syntax errors that are causing this JSON to be invalid. Focus on:
- Missing commas
- Missing or incorrect quotes
- Missing brackets or braces
- Trailing commas
- Invalid characters

Do not modify the structure or content, only fix syntax issues. Use the knowledge base context to understand the intended structure and values.
</error_description>

Tool calls have been disabled. You MUST start your response with <edits>."""
