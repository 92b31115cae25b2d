import json

from ..capability import Capability


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
        if isinstance(num1, bool) or not isinstance(num1, (int, float)):
            raise ValueError("num1 is not a number")
        if isinstance(num2, bool) or not isinstance(num2, (int, float)):
            raise ValueError("num2 is not a number")
        return json.dumps({"result": num1 + num2})
