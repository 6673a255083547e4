from azure_sql_exporter.app import main

if __name__ == "__main__":
    main()
