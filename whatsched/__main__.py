from whatsched.main import main

main()
