from cerberus.main import main

main()
