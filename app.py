"""Run entrypoint for the bloud gateway using the core factory."""

from bloud_core import create_app

app = create_app()


def main() -> None:
    """Run the development server.

    Single-threaded: control messages and requests are handled one at a time.
    """
    app.run(debug=True, host="0.0.0.0", port=5001, threaded=False)


if __name__ == "__main__":
    main()
