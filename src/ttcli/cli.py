from ttcli.TIMETRACK.timetrack_app import timetrack_app

app = timetrack_app


def main():
    app(prog_name="tt")


if __name__ == "__main__":
    main()
