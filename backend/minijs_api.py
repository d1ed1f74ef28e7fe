import logging

from flask import Flask, request, jsonify
from flask_cors import CORS

import minijs

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "MAX_CONTENT_LENGTH": 1024 * 1024,
    "CORS_ORIGINS": "*",
}

def ast_to_dict(node):
    """
    Serialize AST to dict recursively
    """
    if node is None:
        return None
    if isinstance(node, list):
        return [ast_to_dict(s) for s in node]
    d = {"type": type(node).__name__}
    if isinstance(node, minijs.Program):
        d["body"] = ast_to_dict(node.body)
    elif isinstance(node, minijs.VariableDeclaration):
        d["name"] = node.name
        d["kind"] = node.kind
        d["declared_type"] = node.declared_type
        d["value"] = ast_to_dict(node.value)
    elif isinstance(node, minijs.ReturnStatement):
        d["argument"] = ast_to_dict(node.argument)
    elif isinstance(node, minijs.IfStatement):
        d["test"] = ast_to_dict(node.test)
        d["consequent"] = ast_to_dict(node.consequent)
        d["alternate"] = ast_to_dict(node.alternate)
    elif isinstance(node, minijs.WhileStatement):
        d["test"] = ast_to_dict(node.test)
        d["body"] = ast_to_dict(node.body)
    elif isinstance(node, minijs.FunctionDeclaration):
        d["name"] = node.name
        d["params"] = list(node.params)
        d["body"] = ast_to_dict(node.body)
    elif isinstance(node, minijs.BinaryExpression):
        d["operator"] = node.operator
        d["left"] = ast_to_dict(node.left)
        d["right"] = ast_to_dict(node.right)
    elif isinstance(node, minijs.UnaryExpression):
        d["operator"] = node.operator
        d["argument"] = ast_to_dict(node.argument)
    elif isinstance(node, minijs.CallExpression):
        d["callee"] = node.callee_name
        d["arguments"] = ast_to_dict(node.arguments)
    elif isinstance(node, minijs.Literal):
        d["value"] = node.value
        d["kind"] = node.kind
    elif isinstance(node, minijs.Identifier):
        d["name"] = node.name
    return d

def empty_response(errors):
    return {
        "tokens": [],
        "ast": {},
        "ir": "",
        "errors": errors,
    }

def create_app(config=None):
    app = Flask(__name__)
    app.config.from_mapping(DEFAULT_CONFIG)
    app.config.from_prefixed_env("MINIJS")
    if config:
        app.config.from_mapping(config)
    CORS(app, origins=app.config["CORS_ORIGINS"])  # allow cross-origin requests

    @app.route("/compile", methods=["POST"])
    def compile_code():
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not isinstance(data.get("code", ""), str):
            return jsonify(empty_response(["Request error: expected JSON object with a 'code' string"])), 400
        code = data.get("code", "")
        try:
            result = minijs.compile_source(code, verbose=False)

            # Process tokens to match terminal format
            processed_tokens = []
            for token in result['tokens']:
                if token.type != 'EOF':
                    processed_tokens.append({
                        "type": token.type,
                        "value": token.value,
                        "lineno": token.lineno
                    })

            response = {
                "tokens": processed_tokens,
                "ast": ast_to_dict(result['ast']) if result['ast'] else {},
                "ir": result['ir'],
                "errors": result['errors'],
            }
            return jsonify(response)
        except Exception as e:
            logger.exception("unexpected failure compiling request")
            return jsonify(empty_response([f"Unexpected error: {str(e)}"])), 500

    return app

app = create_app()

if __name__ == "__main__":
    app.run(debug=app.config.get("DEBUG", False))
