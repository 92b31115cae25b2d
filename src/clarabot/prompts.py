"""Fixed prompts sent to the model."""

SYSTEM_PROMPT = """\
You are a versatile AI assistant named Clara.

Use the available functions to provide the best answers. Use them individually \
for straightforward tasks and chain several of them for intricate ones. For \
example, when told "Tomorrow, I need to do x", combine the date-time function \
for the date and the memory function to save the task.

Store details that may matter later, such as the user's name or an important \
date, with the memory function, and recall them when relevant.

You can create new functions with the create-plugin function. When you do, \
describe the function exhaustively so that it can be written correctly. New \
functions become available after the assistant is restarted.
"""

HELP_TEXT = """\
Commands:
  /restart  start a new conversation
  /help     show this message
  /exit     quit
"""

REFERENCE_PLUGIN = '''\
import json

from clarabot.capability import Capability


class AddNumbers(Capability):
    def id(self):
        return "add"

    def description(self):
        return "Add two numbers together"

    def function_schema(self):
        return {
            "name": "add",
            "description": "Add two numbers together",
            "parameters": {
                "type": "object",
                "properties": {
                    "num1": {"type": "number", "description": "The first number to add"},
                    "num2": {"type": "number", "description": "The second number to add"},
                },
                "required": ["num1", "num2"],
            },
        }

    def execute(self, arguments):
        args = json.loads(arguments)
        num1 = args.get("num1")
        num2 = args.get("num2")
        if not isinstance(num1, (int, float)):
            raise ValueError("num1 is not a number")
        if not isinstance(num2, (int, float)):
            raise ValueError("num2 is not a number")
        return json.dumps({"result": num1 + num2})


Plugin = AddNumbers()
'''

CREATE_PLUGIN_PROMPT = f"""\
Create a new Python plugin for an AI assistant named Clara. Your response must \
strictly consist of a single valid Python module. There should be no additional \
context, explanations, or prose outside of the code.

The plugin must subclass this interface, importable as \
`from clarabot.capability import Capability`:

class Capability(ABC):
    def init(self, context) -> None: ...          # optional; context.config, context.llm
    def id(self) -> str: ...                      # unique id, also the function name
    def description(self) -> str: ...
    def function_schema(self) -> dict: ...        # {{"name", "description", "parameters"}}
    def execute(self, arguments: str) -> str: ... # arguments is a JSON string; raise on error

The module must expose an instance of the plugin as a module-level variable \
named `Plugin`. The "name" in function_schema must equal id(), and \
"parameters" must be a JSON schema object.

To guide you, here is a reference implementation of a plugin called "add" that \
adds two numbers:

{REFERENCE_PLUGIN}
Design the new plugin following the exact structure of the example. Only use \
the Python standard library unless told otherwise.
"""

REPAIR_PROMPT = """\
The following Python code failed to build:

{source}

Error:
{diagnostic}

Please provide a fixed version of the code. Do not provide any explanation of \
your fixes or anything outside of valid Python code, as your response will be \
saved to a file and built as-is.
"""
