"""주소/sockaddr 변환 및 소켓 바인드"""
