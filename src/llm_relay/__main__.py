"""
Point d'entrée pour `python -m llm_relay`.
"""
import os

import uvicorn

from .core.constants import CONFIG_PATH_ENV_VAR


def main():
    """Fonction principale."""
    import argparse

    parser = argparse.ArgumentParser(description="LLM Relay")
    parser.add_argument("--host", default="0.0.0.0", help="Host (défaut: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Port (défaut: 3000)")
    parser.add_argument("--reload", action="store_true", help="Activer le reload auto")
    parser.add_argument("--config", default=None, help="Chemin du config.toml")

    args = parser.parse_args()

    if args.config:
        # Passe par l'environnement pour survivre au reload (process enfant)
        os.environ[CONFIG_PATH_ENV_VAR] = os.path.abspath(args.config)

    print(f"🚀 Démarrage de LLM Relay sur http://{args.host}:{args.port}")

    uvicorn.run(
        "llm_relay.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
