"""
Integrations Module - External System Integrations
===================================================

Provides the connection to the model provider used by the router, the context
compactor and the specialist agents.

Modules:
    model_gateway: One-shot generation and the bounded streamed tool loop

Key Components:

Model Gateway (model_gateway.py):
    Wraps an OpenAI-compatible chat completions client:
    - generate(): single completion on the lightweight router model
    - stream(): agent-model streaming with up to max_tool_steps tool rounds
    - Tool calls are executed through a ToolRegistry and fed back to the model

Example:
    Streaming an agent reply:

        from integrations.model_gateway import create_model_gateway

        gateway = create_model_gateway(settings)
        async for chunk in gateway.stream(messages, tools=registry):
            print(chunk, end="")

See Also:
    :mod:`core.agents`: Specialist agents built on the gateway
    :mod:`utils.client_factory`: Provider client construction
"""
