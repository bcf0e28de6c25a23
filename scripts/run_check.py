from ssrcheck.check_ssr import main


if __name__ == "__main__":
    main()
